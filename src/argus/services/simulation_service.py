from __future__ import annotations

import logging
import random
from typing import Any, Dict, List, Optional

from fastapi import Request

from argus import metrics
from argus.schemas.common import utc_now
from argus.state import get_state

logger = logging.getLogger(__name__)

WEB_ENDPOINTS = ["/", "/about", "/contact", "/products", "/blog"]
API_ENDPOINTS = [
    "/api/v1/users",
    "/api/v1/users/{id}",
    "/api/v1/orders",
    "/api/v1/orders/{id}",
    "/api/v1/products",
    "/api/v1/auth/login",
    "/api/v1/auth/refresh",
    "/api/v1/search",
]
DB_TABLES = ["users", "orders", "products", "sessions", "payments", "audit_log"]
STATIC_ASSETS = ["/index.html", "/css/site.css", "/js/app.js", "/img/logo.png", "/fonts/inter.woff2"]
MICROSERVICES = ["user-service", "order-service", "payment-service", "inventory-service", "notification-service"]

SLOW_QUERY_MS = 50.0


def _pick_status(rng: random.Random, error_chance: float) -> int:
    if rng.random() < error_chance:
        return rng.choice([500, 502, 503])
    return 200


# PUBLIC_INTERFACE
def simulate_web_service(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Simulate a burst of page views against a small website."""
    rng = rng or random.Random()
    state = get_state(request.app)
    total = rng.randint(10, 60)
    errors = 0
    latency_sum = 0.0
    for _ in range(total):
        endpoint = rng.choice(WEB_ENDPOINTS)
        latency_ms = rng.uniform(50, 250)
        status = _pick_status(rng, 0.05)
        if status >= 500:
            errors += 1
        latency_sum += latency_ms
        metrics.record_http_request("GET", endpoint, status, latency_ms / 1000.0)

    avg = latency_sum / total
    state.logging_service.log_with_context(
        "info", "Web service simulation", service_type="web-service", requests=total, errors=errors
    )
    return {
        "message": "Web service simulation completed",
        "service_type": "web-service",
        "requests_simulated": total,
        "avg_response_time_ms": round(avg, 2),
        "error_rate": round(errors / total * 100.0, 2),
        "endpoints_tested": list(WEB_ENDPOINTS),
        "timestamp": utc_now(),
    }


# PUBLIC_INTERFACE
def simulate_api_service(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Simulate REST API traffic including rate limiting and authentication failures."""
    rng = rng or random.Random()
    state = get_state(request.app)
    total = rng.randint(20, 120)
    rate_limit_hits = 0
    auth_failures = 0
    latency_sum = 0.0
    for _ in range(total):
        endpoint = rng.choice(API_ENDPOINTS)
        method = rng.choice(["GET", "GET", "POST", "PUT", "DELETE"])
        latency_ms = rng.uniform(25, 125)
        roll = rng.random()
        if roll < 0.03:
            status = 429
            rate_limit_hits += 1
        elif roll < 0.07:
            status = 401
            auth_failures += 1
        else:
            status = 201 if method == "POST" else 200
        latency_sum += latency_ms
        metrics.record_http_request(method, endpoint, status, latency_ms / 1000.0)

    if auth_failures:
        state.logging_service.log_with_context(
            "warn", "Authentication failures during API simulation", auth_failures=auth_failures
        )
    state.logging_service.log_with_context("info", "API service simulation", service_type="api-service", requests=total)
    return {
        "message": "API service simulation completed",
        "service_type": "api-service",
        "requests_simulated": total,
        "avg_latency_ms": round(latency_sum / total, 2),
        "rate_limit_hits": rate_limit_hits,
        "auth_failures": auth_failures,
        "endpoints_available": len(API_ENDPOINTS),
        "timestamp": utc_now(),
    }


# PUBLIC_INTERFACE
def simulate_database_service(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Simulate a query workload against a connection pool."""
    rng = rng or random.Random()
    state = get_state(request.app)
    queries = rng.randint(20, 100)
    pool_size = rng.randint(5, 20)
    slow = 0
    total_ms = 0.0
    tables = set()
    for _ in range(queries):
        table = rng.choice(DB_TABLES)
        tables.add(table)
        query_ms = rng.uniform(10, 60)
        total_ms += query_ms
        if query_ms > SLOW_QUERY_MS:
            slow += 1
        metrics.custom_business_metric.labels(metric_type="db_query_ms", category=table).set(query_ms)

    if slow:
        state.logging_service.log_with_context(
            "warn", "Slow queries detected", slow_queries=slow, threshold_ms=SLOW_QUERY_MS
        )
    state.logging_service.log_with_context(
        "info", "Database service simulation", service_type="database-service", queries=queries
    )
    return {
        "message": "Database service simulation completed",
        "service_type": "database-service",
        "queries_executed": queries,
        "avg_query_time_ms": round(total_ms / queries, 2),
        "slow_queries": slow,
        "connection_pool_size": pool_size,
        "tables_accessed": sorted(tables),
        "timestamp": utc_now(),
    }


# PUBLIC_INTERFACE
def simulate_static_site(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Simulate CDN-style asset delivery with cache hits and misses."""
    rng = rng or random.Random()
    state = get_state(request.app)
    served = rng.randint(50, 200)
    hits = 0
    total_kb = 0.0
    for _ in range(served):
        asset = rng.choice(STATIC_ASSETS)
        if rng.random() < 0.85:
            hits += 1
        total_kb += rng.uniform(2, 500)
        metrics.record_http_request("GET", asset, 200, rng.uniform(1, 20) / 1000.0)

    state.logging_service.log_with_context(
        "info", "Static site simulation", service_type="static-site", requests=served, cache_hits=hits
    )
    return {
        "message": "Static site simulation completed",
        "service_type": "static-site",
        "requests_served": served,
        "cache_hit_rate": f"{hits / served * 100.0:.1f}%",
        "total_bandwidth_mb": f"{total_kb / 1024.0:.2f}",
        "timestamp": utc_now(),
    }


# PUBLIC_INTERFACE
def simulate_microservice(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Simulate inter-service calls, each recorded as a span, with occasional circuit breaker trips."""
    rng = rng or random.Random()
    state = get_state(request.app)
    calls = rng.randint(10, 50)
    trips = 0
    involved: List[str] = []
    with state.tracing.span("microservice_simulation"):
        for _ in range(calls):
            target = rng.choice(MICROSERVICES)
            if target not in involved:
                involved.append(target)
            with state.tracing.span(f"call_{target}", service_name=target):
                latency_s = rng.uniform(5, 150) / 1000.0
                metrics.service_dependency_latency_seconds.labels(
                    source_service="argus", target_service=target, operation="rpc"
                ).observe(latency_s)
            if rng.random() < 0.05:
                trips += 1

    if trips:
        state.logging_service.log_with_context("warn", "Circuit breaker opened", trips=trips)
    state.logging_service.log_with_context(
        "info", "Microservice simulation", service_type="microservice", service_calls=calls
    )
    return {
        "message": "Microservice simulation completed",
        "service_type": "microservice",
        "service_calls": calls,
        "circuit_breaker_trips": trips,
        "services_involved": involved,
        "timestamp": utc_now(),
    }


WORDPRESS_PLUGINS = ["woocommerce", "yoast-seo", "akismet", "jetpack", "contact-form-7"]
NEXTJS_PAGES = ["/", "/blog/[slug]", "/products/[id]", "/api/revalidate", "/account"]


# PUBLIC_INTERFACE
def simulate_wordpress(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Simulate a WordPress site: page views, PHP execution time, plugin hooks and DB queries."""
    rng = rng or random.Random()
    state = get_state(request.app)
    page_views = rng.randint(20, 100)
    php_ms = 0.0
    db_queries = 0
    plugin_calls: Dict[str, int] = {p: 0 for p in WORDPRESS_PLUGINS}
    for _ in range(page_views):
        path = rng.choice(["/", "/shop", "/blog", "/wp-admin", "/cart"])
        latency = rng.uniform(80, 600)
        php_ms += latency
        db_queries += rng.randint(8, 40)
        plugin_calls[rng.choice(WORDPRESS_PLUGINS)] += 1
        metrics.record_http_request("GET", path, _pick_status(rng, 0.02), latency / 1000.0)

    state.logging_service.log_business_event("wordpress_simulation", "wordpress", {"page_views": page_views})
    return {
        "message": "WordPress service simulation completed",
        "service": "argus",
        "service_type": "wordpress",
        "functionality": "wordpress_monitoring",
        "page_views": page_views,
        "avg_php_execution_ms": round(php_ms / page_views, 2),
        "db_queries": db_queries,
        "active_plugins": len(WORDPRESS_PLUGINS),
        "plugin_calls": plugin_calls,
        "timestamp": utc_now(),
    }


# PUBLIC_INTERFACE
def simulate_nextjs(request: Request, rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Simulate a Next.js app: SSR/SSG renders, API routes and build cache usage."""
    rng = rng or random.Random()
    state = get_state(request.app)
    renders = rng.randint(20, 100)
    ssr = 0
    render_ms = 0.0
    for _ in range(renders):
        page = rng.choice(NEXTJS_PAGES)
        if rng.random() < 0.4:
            ssr += 1
            latency = rng.uniform(40, 300)
        else:
            latency = rng.uniform(2, 30)
        render_ms += latency
        metrics.record_http_request("GET", page, 200, latency / 1000.0)

    state.logging_service.log_business_event("nextjs_simulation", "nextjs", {"renders": renders})
    return {
        "message": "Next.js service simulation completed",
        "service": "argus",
        "service_type": "nextjs",
        "functionality": "nextjs_monitoring",
        "page_renders": renders,
        "ssr_renders": ssr,
        "static_renders": renders - ssr,
        "avg_render_time_ms": round(render_ms / renders, 2),
        "pages": list(NEXTJS_PAGES),
        "timestamp": utc_now(),
    }
