"""Service layer for collabnotes."""
