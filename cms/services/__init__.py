# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for one part of the domain:
#
#   article_service  - CRUD + filtered pagination + read-through cache for Article
#   auth_service     - register / login / refresh / logout over JWTs
#   user_service     - the user directory (CRUD, unique email)
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.  Failures are raised as ``cms.exceptions`` types.
