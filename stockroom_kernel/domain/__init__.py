"""Pure domain layer: value objects, permissions, filters, and statistics. No I/O."""
