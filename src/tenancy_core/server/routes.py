"""HTTP route handlers for the admin API."""

import functools
import json
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from tenancy_core.domains.models import VerificationFailure
from tenancy_core.exceptions import DomainInUseError, NotFoundError, TenancyError, ValidationError
from tenancy_core.observability import get_logger
from tenancy_core.provisioning.models import ProvisioningRequest
from tenancy_core.tenants.models import TenantStatus

if TYPE_CHECKING:
    from tenancy_core.control_plane import ControlPlane

logger = get_logger(__name__)

Handler = Callable[[Request], Awaitable[Response]]


def handle_errors(handler: Handler) -> Handler:
    """Map exceptions raised by a handler to JSON error responses."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except NotFoundError as e:
            return JSONResponse({"error": str(e)}, status_code=404)
        except DomainInUseError as e:
            return JSONResponse({"error": str(e)}, status_code=409)
        except ValidationError as e:
            return JSONResponse({"error": str(e), "validation_errors": e.errors}, status_code=400)
        except ValueError as e:
            return JSONResponse({"error": str(e)}, status_code=400)
        except TenancyError as e:
            logger.error("Request failed", context={"path": request.url.path}, error=e)
            return JSONResponse({"error": str(e)}, status_code=500)

    return wrapper


async def read_json(request: Request) -> dict[str, Any]:
    """Parse a JSON object body; an empty body is an empty object.

    Raises:
        ValueError: If the body is not a JSON object
    """
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except json.JSONDecodeError:
        raise ValueError("Invalid JSON body") from None
    if not isinstance(body, dict):
        raise ValueError("JSON body must be an object")
    return body


def create_routes(plane: "ControlPlane") -> list[Route]:
    """Create HTTP routes for the control plane.

    Args:
        plane: The configured ControlPlane instance

    Returns:
        List of Starlette routes
    """

    async def health(request: Request) -> Response:
        """Health check endpoint."""
        return JSONResponse(
            {
                "status": "ok",
                "timestamp": time.time(),
            }
        )

    # Tenants

    @handle_errors
    async def tenants_list(request: Request) -> Response:
        status = request.query_params.get("status")
        tenants = await plane.lifecycle.list_tenants(
            status=TenantStatus(status) if status else None,
            tier=request.query_params.get("tier"),
            limit=int(request.query_params.get("limit", 100)),
            offset=int(request.query_params.get("offset", 0)),
        )
        return JSONResponse({"tenants": [tenant.to_dict() for tenant in tenants]})

    @handle_errors
    async def tenant_create(request: Request) -> Response:
        body = await read_json(request)
        result = await plane.provisioning.provision(ProvisioningRequest.from_dict(body))
        if result.success:
            status_code = 201
        elif result.validation_errors:
            status_code = 400
        else:
            status_code = 500
        return JSONResponse(result.to_dict(), status_code=status_code)

    @handle_errors
    async def tenant_detail(request: Request) -> Response:
        tenant = await plane.lifecycle.get(request.path_params["tenant_id"])
        return JSONResponse(tenant.to_dict())

    @handle_errors
    async def tenant_update(request: Request) -> Response:
        tenant_id = request.path_params["tenant_id"]
        tenant = await plane.lifecycle.get(tenant_id)
        body = await read_json(request)
        body.setdefault("company_name", tenant.company_name)
        body.setdefault("owner_email", tenant.owner_email)
        body.setdefault("tier", tenant.tier)
        if tenant.custom_domain and tenant.domain_verified:
            body.setdefault("custom_domain", tenant.custom_domain)

        result = await plane.provisioning.update(tenant_id, ProvisioningRequest.from_dict(body))
        if result.success:
            status_code = 200
        elif result.validation_errors:
            status_code = 400
        else:
            status_code = 500
        return JSONResponse(result.to_dict(), status_code=status_code)

    @handle_errors
    async def tenant_delete(request: Request) -> Response:
        result = await plane.lifecycle.delete_tenant(request.path_params["tenant_id"])
        return JSONResponse(result.to_dict(), status_code=200 if result.success else 500)

    @handle_errors
    async def tenant_suspend(request: Request) -> Response:
        body = await read_json(request)
        tenant = await plane.lifecycle.suspend(
            request.path_params["tenant_id"],
            reason=body.get("reason") or "Suspended by administrator",
        )
        return JSONResponse(tenant.to_dict())

    @handle_errors
    async def tenant_resume(request: Request) -> Response:
        tenant = await plane.lifecycle.resume(request.path_params["tenant_id"])
        return JSONResponse(tenant.to_dict())

    @handle_errors
    async def tenant_status(request: Request) -> Response:
        health = await plane.lifecycle.get_status(request.path_params["tenant_id"])
        return JSONResponse(health.to_dict(), status_code=404 if health.status == "NotFound" else 200)

    @handle_errors
    async def tenant_domains(request: Request) -> Response:
        records = await plane.domains.list_for_tenant(request.path_params["tenant_id"])
        return JSONResponse({"domains": [record.to_dict() for record in records]})

    @handle_errors
    async def cleanup_demos(request: Request) -> Response:
        results = await plane.lifecycle.cleanup_expired_demos()
        return JSONResponse({
            "count": len(results),
            "results": [result.to_dict() for result in results],
        })

    # Domains

    @handle_errors
    async def domain_create(request: Request) -> Response:
        body = await read_json(request)
        tenant_id = body.get("tenant_id")
        domain = body.get("domain")
        if not tenant_id or not domain:
            return JSONResponse({"error": "Missing required fields: tenant_id, domain"}, status_code=400)

        record = await plane.domains.initiate(tenant_id, domain, body.get("method") or "dns")
        data = record.to_dict()
        data["instructions"] = plane.domains.instructions(record)
        return JSONResponse(data, status_code=201)

    @handle_errors
    async def domain_verify(request: Request) -> Response:
        result = await plane.domains.verify(request.path_params["domain"])
        if result.success:
            status_code = 200
        elif result.reason == VerificationFailure.NOT_FOUND:
            status_code = 404
        else:
            status_code = 400
        return JSONResponse(result.to_dict(), status_code=status_code)

    @handle_errors
    async def domain_detail(request: Request) -> Response:
        return JSONResponse(await plane.domains.get_status(request.path_params["domain"]))

    @handle_errors
    async def domain_delete(request: Request) -> Response:
        domain = request.path_params["domain"]
        await plane.domains.remove(domain)
        return JSONResponse({"removed": domain})

    # Migrations

    @handle_errors
    async def migration_eligibility(request: Request) -> Response:
        eligibility = await plane.migration.check_eligibility(request.path_params["tenant_id"])
        return JSONResponse(eligibility.to_dict())

    @handle_errors
    async def migration_status(request: Request) -> Response:
        return JSONResponse(await plane.migration.get_status(request.path_params["tenant_id"]))

    @handle_errors
    async def migrate_to_shared(request: Request) -> Response:
        result = await plane.migration.migrate_to_shared(request.path_params["tenant_id"])
        return JSONResponse(result.to_dict(), status_code=200 if result.success else 400)

    @handle_errors
    async def migrate_to_dedicated(request: Request) -> Response:
        body = await read_json(request)
        target_tier = body.get("target_tier")
        if not target_tier:
            return JSONResponse({"error": "Missing required field: target_tier"}, status_code=400)
        result = await plane.migration.migrate_to_dedicated(request.path_params["tenant_id"], target_tier)
        return JSONResponse(result.to_dict(), status_code=200 if result.success else 400)

    @handle_errors
    async def migrate_bulk_to_shared(request: Request) -> Response:
        body = await read_json(request)
        tenant_ids = body.get("tenant_ids")
        if not isinstance(tenant_ids, list) or not tenant_ids:
            return JSONResponse({"error": "tenant_ids must be a non-empty list"}, status_code=400)
        result = await plane.migration.bulk_migrate_to_shared([str(tenant_id) for tenant_id in tenant_ids])
        return JSONResponse(result.to_dict())

    return [
        Route("/health", health, methods=["GET"]),
        # Tenants (fixed paths before {tenant_id})
        Route("/tenants", tenants_list, methods=["GET"]),
        Route("/tenants", tenant_create, methods=["POST"]),
        Route("/tenants/cleanup-demos", cleanup_demos, methods=["POST"]),
        Route("/tenants/{tenant_id}", tenant_detail, methods=["GET"]),
        Route("/tenants/{tenant_id}", tenant_update, methods=["PUT"]),
        Route("/tenants/{tenant_id}", tenant_delete, methods=["DELETE"]),
        Route("/tenants/{tenant_id}/suspend", tenant_suspend, methods=["POST"]),
        Route("/tenants/{tenant_id}/resume", tenant_resume, methods=["POST"]),
        Route("/tenants/{tenant_id}/status", tenant_status, methods=["GET"]),
        Route("/tenants/{tenant_id}/domains", tenant_domains, methods=["GET"]),
        # Domains
        Route("/domains", domain_create, methods=["POST"]),
        Route("/domains/{domain}/verify", domain_verify, methods=["POST"]),
        Route("/domains/{domain}", domain_detail, methods=["GET"]),
        Route("/domains/{domain}", domain_delete, methods=["DELETE"]),
        # Migrations
        Route("/migrations/bulk-to-shared", migrate_bulk_to_shared, methods=["POST"]),
        Route("/migrations/{tenant_id}/eligibility", migration_eligibility, methods=["GET"]),
        Route("/migrations/{tenant_id}/status", migration_status, methods=["GET"]),
        Route("/migrations/{tenant_id}/to-shared", migrate_to_shared, methods=["POST"]),
        Route("/migrations/{tenant_id}/to-dedicated", migrate_to_dedicated, methods=["POST"]),
    ]
