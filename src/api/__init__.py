"""HTTP layer: routers, middleware and OpenAPI docs."""
