"""Pure domain: clock, order lifecycle table, immutable views."""
