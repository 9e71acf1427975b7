"""Pure domain logic: hierarchy, FX selection, pricing, stock planning, transfer lifecycle."""
