"""HTTP blueprints: sign-in, role dashboards and the JSON API."""
