# Services package.
#
# Each module exposes async functions that encapsulate store access for
# one concern:
#
#   article_service      — Article CRUD, like counter, cached reads
#   aggregation_service  — contributor rankings and trending tags
#   comment_service      — append-only comments keyed by article
#
# All service functions take an AsyncSession as their first argument so
# that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
