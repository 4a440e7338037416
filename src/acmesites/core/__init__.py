"""Core building blocks: enums, state tables, errors, outcomes and JWS helpers."""
