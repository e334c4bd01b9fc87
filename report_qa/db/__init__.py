# =============================================================================
# Database Package
# =============================================================================
# Sync SQLAlchemy engine and the pgvector embedding table definition.
#
# Key exports:
#   - get_engine: cached engine for the configured pgvector database
#   - build_embedding_table: Table factory for a given name and dimension
# =============================================================================
