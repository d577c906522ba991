"""Discord gateway integration: event normalization and listener cogs."""
