"""Date helpers and pure view derivation."""
