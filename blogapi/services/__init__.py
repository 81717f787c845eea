# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   user_service     credential store: registration, lookup, login
#   article_service  CRUD, pagination/filtering, views, publish toggle
#   comment_service  CRUD scoped to an article, likes
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as ``blogapi.exceptions``
# errors and rendered into HTTP responses by the registered handlers.
