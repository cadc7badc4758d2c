"""Pure domain layer: lifecycle types, DTOs, clock.  ZERO I/O."""
