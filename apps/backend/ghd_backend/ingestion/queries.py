"""GraphQL documents sent to GitHub"""

# Issue and PullRequest share no interface exposing all of these fields,
# so the common projection is repeated in both inline fragments.
USER_ISSUES_SEARCH_QUERY = """
query UserIssuesSearch($query: String!, $first: Int!, $after: String) {
  search(query: $query, type: ISSUE, first: $first, after: $after) {
    issueCount
    pageInfo { hasNextPage endCursor }
    nodes {
      __typename
      ... on Issue {
        databaseId number title url state createdAt updatedAt closedAt
        author {
          login
          ... on User { databaseId }
          ... on Bot { databaseId }
          ... on Mannequin { databaseId }
          ... on Organization { databaseId }
        }
        repository { name owner { login } }
      }
      ... on PullRequest {
        databaseId number title url state createdAt updatedAt closedAt
        isDraft reviewDecision mergedAt
        author {
          login
          ... on User { databaseId }
          ... on Bot { databaseId }
          ... on Mannequin { databaseId }
          ... on Organization { databaseId }
        }
        repository { name owner { login } }
      }
    }
  }
  rateLimit { cost remaining resetAt }
}
"""

PULL_REQUEST_DETAIL_QUERY = """
query PullRequestDetail($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      number title bodyHTML url state isDraft totalCommentsCount
      author {
        login avatarUrl
        ... on User { databaseId name }
        ... on Bot { databaseId }
      }
      repository { name owner { login } }
      milestone { title state dueOn }
      labels(first: 20) { nodes { name color } }
      participants(first: 50) {
        nodes { databaseId login name avatarUrl }
      }
      latestReviews(first: 50) {
        nodes {
          state
          author {
            login avatarUrl
            ... on User { databaseId name }
            ... on Bot { databaseId }
          }
        }
      }
    }
  }
  rateLimit { cost remaining resetAt }
}
"""


def involvement_search(login: str, since: str | None = None) -> str:
    """
    Initial population only needs what is open today; deltas include closed
    items so state transitions reach the cache.
    """
    if since is None:
        return f"involves:{login} is:open sort:updated-desc"
    return f"involves:{login} updated:>={since} sort:updated-desc"
