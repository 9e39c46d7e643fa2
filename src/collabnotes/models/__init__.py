"""Domain, DTO and database models for collabnotes."""
