# storefront/api/errors.py
from contextlib import contextmanager

from fastapi import HTTPException

from storefront.domain.errors import StoreError, StoreUnavailable


@contextmanager
def service_errors():
    """Bledy serwisow -> HTTPException, jak w kazdym routerze."""
    try:
        yield
    except PermissionError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except StoreUnavailable as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"code": e.code, "message": e.message},
            headers={"Retry-After": "1"},
        )
    except StoreError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"code": e.code, "message": e.message},
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
