# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - DECLARATIVE SYNC PRIMITIVES
# STATUS: Core - FastAPI route definitions
# PURPOSE: HTTP endpoints for primitives and their client operations
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
API Routes

Resources are addressed as /{kind}/{namespace}/{name} where kind is the
plural path segment (mutexes, semaphores, leases, ...). Verb endpoints sit
under the resource path:

    POST /mutexes/{ns}/{name}/lock          {holder, ttl, timeout}
    POST /semaphores/{ns}/{name}/acquire    {holder, ttl, timeout}
    POST /barriers/{ns}/{name}/arrive       {holder}
    POST /leases/{ns}/{name}/acquire        {holder, priority, timeout}
    POST /gates/{ns}/{name}/wait            {timeout}
    POST /waitgroups/{ns}/{name}/add        {delta}
    ...

Service and store errors are mapped to HTTP status codes in one place
(_translate_errors).
"""

import logging
from contextlib import contextmanager
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import ValidationError

from core.contracts import ResourceKind
from core.models import JobStatus
from repositories import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from services import (
    LockHeldError,
    NotHolderError,
    PrimitiveFailedError,
    RetryExhaustedError,
    WaitTimeoutError,
    update_status_with_retry,
)
from .schemas import (
    AddRequest,
    ErrorResponse,
    ExecuteRequest,
    ExecuteResponse,
    HolderRequest,
    JobStatusUpdate,
    LeaseAcquireRequest,
    LockRequest,
    ReleaseResponse,
    ResourceCreate,
    ResourceListResponse,
    ResourceResponse,
    WaitRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# URL path segment -> kind
KIND_PATHS = {
    "mutexes": ResourceKind.MUTEX,
    "rwmutexes": ResourceKind.RWMUTEX,
    "semaphores": ResourceKind.SEMAPHORE,
    "permits": ResourceKind.PERMIT,
    "barriers": ResourceKind.BARRIER,
    "arrivals": ResourceKind.ARRIVAL,
    "leases": ResourceKind.LEASE,
    "leaserequests": ResourceKind.LEASE_REQUEST,
    "gates": ResourceKind.GATE,
    "onces": ResourceKind.ONCE,
    "waitgroups": ResourceKind.WAITGROUP,
    "jobs": ResourceKind.JOB,
}

ERROR_RESPONSES = {
    404: {"model": ErrorResponse, "description": "Resource not found"},
    409: {"model": ErrorResponse, "description": "Held by someone else, or not the holder"},
}

WAIT_RESPONSES = {
    **ERROR_RESPONSES,
    408: {"model": ErrorResponse, "description": "Timed out waiting"},
    412: {"model": ErrorResponse, "description": "Primitive reached Failed"},
}


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================
# These will be set by the main app at startup

_client = None
_controller = None


def set_services(client, controller=None):
    """Set service instances for dependency injection."""
    global _client, _controller
    _client = client
    _controller = controller


def get_client():
    if _client is None:
        raise HTTPException(500, "Services not initialized")
    return _client


def resolve_kind(kind_path: str) -> ResourceKind:
    kind = KIND_PATHS.get(kind_path.lower())
    if kind is None:
        raise HTTPException(404, f"Unknown resource type: {kind_path}")
    return kind


@contextmanager
def _translate_errors():
    """Map service and store errors to HTTP errors."""
    try:
        yield
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except AlreadyExistsError as e:
        raise HTTPException(409, str(e))
    except (LockHeldError, NotHolderError) as e:
        raise HTTPException(409, str(e))
    except (ConflictError, RetryExhaustedError) as e:
        raise HTTPException(409, str(e))
    except WaitTimeoutError as e:
        raise HTTPException(408, str(e))
    except PrimitiveFailedError as e:
        raise HTTPException(412, str(e))
    except ValidationError as e:
        raise HTTPException(422, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    except StoreError as e:
        logger.error(f"Store error: {e}")
        raise HTTPException(503, str(e))


# ============================================================================
# CONTROLLER STATUS
# ============================================================================

@router.get("/controller/status", tags=["Controller"])
async def get_controller_status():
    """
    Get dispatcher status and statistics.

    Returns metrics about the reconciliation loop including:
    - Running state and uptime
    - Queue depth, in-flight keys and pending timers
    - Reconcile, conflict and error counts
    """
    if _controller is None:
        raise HTTPException(500, "Controller not initialized")

    stats = _controller.stats

    return {
        "status": "running" if stats["running"] else "stopped",
        "started_at": stats["started_at"],
        "uptime_seconds": stats["uptime_seconds"],
        "workers": stats["workers"],
        "kinds": stats["kinds"],
        "queue": {
            "depth": stats["queue_depth"],
            "in_flight": stats["in_flight"],
            "timers": stats["timers"],
            "backing_off": stats["backing_off"],
        },
        "metrics": {
            "reconciles": stats["reconciles"],
            "conflicts": stats["conflicts"],
            "errors": stats["errors"],
            "events": stats["events"],
            "resyncs": stats["resyncs"],
            "last_resync_at": stats["last_resync_at"],
        },
    }


# ============================================================================
# GENERIC RESOURCES
# ============================================================================

@router.get("/{kind_path}", response_model=ResourceListResponse, tags=["Resources"])
async def list_resources(
    kind_path: str,
    namespace: Optional[str] = Query(None, description="Restrict to one namespace"),
    label: Optional[str] = Query(None, description="Label filter, key=value"),
):
    """List resources of one kind in creation order."""
    kind = resolve_kind(kind_path)
    labels = None
    if label:
        key, sep, value = label.partition("=")
        if not sep:
            raise HTTPException(400, "label filter must be key=value")
        labels = {key: value}

    with _translate_errors():
        items = await get_client().resources.list(kind, namespace=namespace, labels=labels)

    return ResourceListResponse(
        items=[ResourceResponse.from_resource(r) for r in items],
        count=len(items),
    )


@router.post(
    "/{kind_path}/{namespace}",
    response_model=ResourceResponse,
    status_code=201,
    tags=["Resources"],
    responses={
        201: {"description": "Resource created"},
        409: {"model": ErrorResponse, "description": "Already exists"},
        422: {"model": ErrorResponse, "description": "Invalid spec"},
    },
)
async def create_resource(kind_path: str, namespace: str, request: ResourceCreate):
    """
    Create a primitive.

    The spec is validated against the kind's model before it is stored.
    The controller fills in status on its first reconcile.
    """
    kind = resolve_kind(kind_path)
    with _translate_errors():
        created = await get_client().resources.create(
            kind,
            request.name,
            namespace=namespace,
            spec=request.spec,
            labels=request.labels,
        )
    return ResourceResponse.from_resource(created)


@router.get(
    "/{kind_path}/{namespace}/{name}",
    response_model=ResourceResponse,
    tags=["Resources"],
    responses={404: {"model": ErrorResponse}},
)
async def get_resource(kind_path: str, namespace: str, name: str):
    """Get one resource."""
    kind = resolve_kind(kind_path)
    with _translate_errors():
        resource = await get_client().resources.get(kind, name, namespace=namespace)
    return ResourceResponse.from_resource(resource)


@router.delete(
    "/{kind_path}/{namespace}/{name}",
    status_code=204,
    tags=["Resources"],
    responses={404: {"model": ErrorResponse}},
)
async def delete_resource(kind_path: str, namespace: str, name: str):
    """Delete a resource. Children are not deleted with their parent."""
    kind = resolve_kind(kind_path)
    with _translate_errors():
        await get_client().resources.delete(kind, name, namespace=namespace)


# ============================================================================
# JOBS (EXTERNAL)
# ============================================================================

@router.put(
    "/jobs/{namespace}/{name}/status",
    response_model=ResourceResponse,
    tags=["Jobs"],
    responses={404: {"model": ErrorResponse}},
)
async def update_job_status(namespace: str, name: str, request: JobStatusUpdate):
    """
    Record a batch job's counters.

    Called by whatever runs the jobs; Gates with Job conditions read these.
    """
    client = get_client()
    with _translate_errors():
        job = await update_status_with_retry(
            client.store,
            ResourceKind.JOB,
            namespace,
            name,
            lambda current: JobStatus(**request.model_dump()),
        )
    return ResourceResponse.from_resource(job)


# ============================================================================
# MUTEX / RWMUTEX
# ============================================================================

@router.post("/mutexes/{namespace}/{name}/lock", response_model=ResourceResponse,
             tags=["Mutex"], responses=WAIT_RESPONSES)
async def lock_mutex(namespace: str, name: str, request: LockRequest):
    """Take the lock, waiting up to `timeout` seconds for it to free up."""
    with _translate_errors():
        mutex = await get_client().mutex.lock(
            name, holder=request.holder, ttl=request.ttl, timeout=request.timeout, namespace=namespace,
        )
    return ResourceResponse.from_resource(mutex)


@router.post("/mutexes/{namespace}/{name}/unlock", response_model=ResourceResponse,
             tags=["Mutex"], responses=ERROR_RESPONSES)
async def unlock_mutex(namespace: str, name: str, request: HolderRequest):
    with _translate_errors():
        mutex = await get_client().mutex.unlock(name, holder=request.holder, namespace=namespace)
    return ResourceResponse.from_resource(mutex)


@router.post("/rwmutexes/{namespace}/{name}/rlock", response_model=ResourceResponse,
             tags=["RWMutex"], responses=WAIT_RESPONSES)
async def rlock_rwmutex(namespace: str, name: str, request: LockRequest):
    """Take a shared read lock."""
    with _translate_errors():
        rw = await get_client().rwmutex.rlock(
            name, holder=request.holder, ttl=request.ttl, timeout=request.timeout, namespace=namespace,
        )
    return ResourceResponse.from_resource(rw)


@router.post("/rwmutexes/{namespace}/{name}/lock", response_model=ResourceResponse,
             tags=["RWMutex"], responses=WAIT_RESPONSES)
async def lock_rwmutex(namespace: str, name: str, request: LockRequest):
    """Take the exclusive write lock."""
    with _translate_errors():
        rw = await get_client().rwmutex.lock(
            name, holder=request.holder, ttl=request.ttl, timeout=request.timeout, namespace=namespace,
        )
    return ResourceResponse.from_resource(rw)


@router.post("/rwmutexes/{namespace}/{name}/unlock", response_model=ResourceResponse,
             tags=["RWMutex"], responses=ERROR_RESPONSES)
async def unlock_rwmutex(namespace: str, name: str, request: HolderRequest):
    with _translate_errors():
        rw = await get_client().rwmutex.unlock(name, holder=request.holder, namespace=namespace)
    return ResourceResponse.from_resource(rw)


# ============================================================================
# SEMAPHORE
# ============================================================================

@router.post("/semaphores/{namespace}/{name}/acquire", response_model=ResourceResponse,
             status_code=201, tags=["Semaphore"], responses=WAIT_RESPONSES)
async def acquire_semaphore(namespace: str, name: str, request: LockRequest):
    """Take a permit. Returns the created Permit."""
    with _translate_errors():
        permit = await get_client().semaphore.acquire(
            name, holder=request.holder, ttl=request.ttl, timeout=request.timeout, namespace=namespace,
        )
    return ResourceResponse.from_resource(permit)


@router.post("/semaphores/{namespace}/{name}/release", response_model=ReleaseResponse,
             tags=["Semaphore"], responses=ERROR_RESPONSES)
async def release_semaphore(namespace: str, name: str, request: HolderRequest):
    """Release every permit the holder has on this semaphore."""
    with _translate_errors():
        released = await get_client().semaphore.release(name, holder=request.holder, namespace=namespace)
    return ReleaseResponse(released=released)


@router.get("/semaphores/{namespace}/{name}/permits", response_model=ResourceListResponse,
            tags=["Semaphore"])
async def list_semaphore_permits(namespace: str, name: str):
    with _translate_errors():
        permits = await get_client().semaphore.list_permits(name, namespace=namespace)
    return ResourceListResponse(
        items=[ResourceResponse.from_resource(p) for p in permits],
        count=len(permits),
    )


# ============================================================================
# BARRIER / GATE
# ============================================================================

@router.post("/barriers/{namespace}/{name}/arrive", response_model=ResourceResponse,
             status_code=201, tags=["Barrier"], responses=ERROR_RESPONSES)
async def arrive_barrier(namespace: str, name: str, request: HolderRequest):
    """Record an arrival. Returns the Arrival."""
    with _translate_errors():
        arrival = await get_client().barrier.arrive(name, holder=request.holder, namespace=namespace)
    return ResourceResponse.from_resource(arrival)


@router.post("/barriers/{namespace}/{name}/wait", response_model=ResourceResponse,
             tags=["Barrier"], responses=WAIT_RESPONSES)
async def wait_barrier(namespace: str, name: str, request: WaitRequest):
    with _translate_errors():
        barrier = await get_client().barrier.wait(name, timeout=request.timeout, namespace=namespace)
    return ResourceResponse.from_resource(barrier)


@router.post("/gates/{namespace}/{name}/wait", response_model=ResourceResponse,
             tags=["Gate"], responses=WAIT_RESPONSES)
async def wait_gate(namespace: str, name: str, request: WaitRequest):
    with _translate_errors():
        gate = await get_client().gate.wait(name, timeout=request.timeout, namespace=namespace)
    return ResourceResponse.from_resource(gate)


# ============================================================================
# LEASE
# ============================================================================

@router.post("/leases/{namespace}/{name}/acquire", response_model=ResourceResponse,
             tags=["Lease"], responses=WAIT_RESPONSES)
async def acquire_lease(namespace: str, name: str, request: LeaseAcquireRequest):
    """
    File a LeaseRequest and wait for the controller to grant it.

    Needs the controller running: grants are made by the Lease reconciler.
    """
    with _translate_errors():
        lease = await get_client().lease.acquire(
            name,
            holder=request.holder,
            priority=request.priority,
            ttl=request.ttl,
            timeout=request.timeout,
            namespace=namespace,
        )
    return ResourceResponse.from_resource(lease)


@router.post("/leases/{namespace}/{name}/renew", response_model=ResourceResponse,
             tags=["Lease"], responses=ERROR_RESPONSES)
async def renew_lease(namespace: str, name: str, request: HolderRequest):
    with _translate_errors():
        lease = await get_client().lease.renew(name, holder=request.holder, namespace=namespace)
    return ResourceResponse.from_resource(lease)


@router.post("/leases/{namespace}/{name}/release", response_model=ResourceResponse,
             tags=["Lease"], responses=ERROR_RESPONSES)
async def release_lease(namespace: str, name: str, request: HolderRequest):
    with _translate_errors():
        lease = await get_client().lease.release(name, holder=request.holder, namespace=namespace)
    return ResourceResponse.from_resource(lease)


# ============================================================================
# ONCE / WAITGROUP
# ============================================================================

@router.post("/onces/{namespace}/{name}/execute", response_model=ExecuteResponse,
             tags=["Once"], responses={404: {"model": ErrorResponse}})
async def execute_once(namespace: str, name: str, request: ExecuteRequest):
    """
    Claim the single execution.

    `won` is true only for the caller that flipped `executed`.
    """
    with _translate_errors():
        won = await get_client().once.mark_executed(name, executor=request.executor, namespace=namespace)
    return ExecuteResponse(executed=True, won=won)


@router.post("/waitgroups/{namespace}/{name}/add", response_model=ResourceResponse,
             tags=["WaitGroup"], responses={404: {"model": ErrorResponse}})
async def add_waitgroup(namespace: str, name: str, request: AddRequest):
    with _translate_errors():
        wg = await get_client().waitgroup.add(name, delta=request.delta, namespace=namespace)
    return ResourceResponse.from_resource(wg)


@router.post("/waitgroups/{namespace}/{name}/done", response_model=ResourceResponse,
             tags=["WaitGroup"], responses={404: {"model": ErrorResponse}})
async def done_waitgroup(namespace: str, name: str):
    with _translate_errors():
        wg = await get_client().waitgroup.done(name, namespace=namespace)
    return ResourceResponse.from_resource(wg)


@router.post("/waitgroups/{namespace}/{name}/wait", response_model=ResourceResponse,
             tags=["WaitGroup"], responses=WAIT_RESPONSES)
async def wait_waitgroup(namespace: str, name: str, request: WaitRequest):
    with _translate_errors():
        wg = await get_client().waitgroup.wait(name, timeout=request.timeout, namespace=namespace)
    return ResourceResponse.from_resource(wg)


__all__ = ["router", "set_services", "KIND_PATHS"]
