"""ChatCommerce domain models."""
