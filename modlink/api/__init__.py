"""HTTP surface: the linked-role consent flow and metadata endpoints."""
