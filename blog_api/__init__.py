"""Backend for the personal blog: public API, image delivery and repair tooling."""
