"""Result storage."""
