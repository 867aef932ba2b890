from fastapi.responses import JSONResponse


def success_response(data=None, message="OK", status=200):
    return JSONResponse(
        status_code=status,
        content={
            "ok": True,
            "message": message,
            **(data or {}),
        }
    )


def error_response(error, status=400, code=None, data=None):
    return JSONResponse(
        status_code=status,
        content={
            "ok": False,
            "error": error,
            "code": code,
            "data": data or {},
        }
    )
