API_PREFIX = "api/v4/"


def normalize_endpoint(host: str) -> str:
    if not host.startswith(("http://", "https://")):
        host = f"http://{host}"
    return host.rstrip("/") + "/"


def api_base_url(host: str, prefix: str = API_PREFIX) -> str:
    base = normalize_endpoint(host)
    if base.endswith(prefix):
        return base
    return f"{base}{prefix}"


def join_url(base: str, path: str) -> str:
    if path.startswith(("http://", "https://")):
        return path
    return f"{base}{path.lstrip('/')}"


def safe_int(value):
    try:
        return int(value)
    except (ValueError, TypeError):
        return None
