"""
Registrar client for the Dynadot XML API.

This module provides the async client used for availability searches,
registration and the two forwarding settings applied after purchase. Raw
XML responses are mapped onto the typed schema in ``models`` by one set of
mapping functions with an explicit table of known element paths; any use
of a fallback path is logged.
"""

import re
import time
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Optional, Protocol, Sequence, runtime_checkable

import httpx
import idna

from .audit_logger import AuditLogger
from .config import RegistrarConfig
from .enums import LogLevel, RegistrarErrorCode
from .exceptions import RegistrarError, ValidationError
from .models import EmailForward, OperationResult, RegisteredDomain, SearchResult
from .rate_limiter import RateLimiter


# Known element paths, most specific first. The first segment names the root
# element the path applies to.
SEARCH_RESULT_PATHS = (
    "Results/SearchResponse/SearchHeader",
    "SearchResponse/SearchResults/SearchResult",
    "SearchResponse/SearchHeader",
)

DOMAIN_INFO_PATHS = (
    "ListDomainInfoResponse/ListDomainInfoContent/DomainInfoList/DomainInfo",
    "ListDomainInfoResponse/DomainInfoList/DomainInfo",
    "ListDomainInfoResponse/ListDomainInfoContent/DomainInfo",
    "ListDomainInfoResponse/DomainInfo",
)

DOMAIN_NAME_FIELDS = ("Name", "Domain/Name", "DomainName")
EXPIRATION_FIELDS = ("Expiration", "Domain/Expiration", "ExpirationDate")
STATUS_FIELDS = ("Status", "Domain/Status", "RegistrationStatus")

FAILURE_CODES = frozenset({"-1"})

_PRICE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)(?:\s*in\s+([A-Za-z]{3}))?")

COMPONENT = "Registrar"


@runtime_checkable
class Registrar(Protocol):
    """Operations the acquisition pipeline needs from a registrar."""

    async def search_domain(self, domain: str) -> SearchResult:
        ...

    async def register_domain(self, domain: str, duration_years: int = 1) -> OperationResult:
        ...

    async def set_email_forward(
        self, domain: str, forwards: Sequence[EmailForward]
    ) -> OperationResult:
        ...

    async def set_url_forwarding(
        self, domain: str, url: str, is_permanent: bool = True
    ) -> OperationResult:
        ...

    async def list_domains(self) -> list[RegisteredDomain]:
        ...


def to_ascii_domain(domain: str) -> str:
    """
    IDNA-encode a domain for the registrar API.

    Raises:
        ValidationError: If the domain cannot be IDNA-encoded
    """
    domain = domain.strip().lower()
    if domain.isascii():
        return domain
    try:
        return idna.encode(domain, uts46=True).decode("ascii")
    except idna.IDNAError as e:
        raise ValidationError(
            code="idna_error",
            message=f"IDNA encoding failed for {domain}: {e}",
            details={"domain": domain},
        )


def normalize_forward_url(url: str) -> str:
    """Prefix ``https://`` when the URL carries no scheme."""
    url = url.strip()
    if url.startswith("http://") or url.startswith("https://"):
        return url
    return f"https://{url}"


def find_first(
    root: ET.Element, paths: Sequence[str]
) -> tuple[Optional[ET.Element], int]:
    """Return the first element matching one of ``paths`` and the path's index."""
    for index, path in enumerate(paths):
        root_tag, _, rest = path.partition("/")
        if root.tag != root_tag:
            continue
        element = root.find(rest) if rest else root
        if element is not None:
            return element, index
    return None, -1


def find_all_first(
    root: ET.Element, paths: Sequence[str]
) -> tuple[list[ET.Element], int]:
    """Like ``find_first`` but returns every element of the first matching path."""
    for index, path in enumerate(paths):
        root_tag, _, rest = path.partition("/")
        if root.tag != root_tag:
            continue
        elements = root.findall(rest) if rest else [root]
        if elements:
            return elements, index
    return [], -1


def field_text(element: ET.Element, candidates: Sequence[str]) -> Optional[str]:
    for candidate in candidates:
        text = element.findtext(candidate)
        if text is not None and text.strip():
            return text.strip()
    return None


def parse_price(raw: Optional[str]) -> tuple[Optional[float], Optional[str]]:
    """
    Parse a Dynadot price string such as ``"7.99 in USD"``.

    Returns:
        Tuple of (price, currency); both None if no number is present
    """
    if not raw:
        return None, None
    match = _PRICE_PATTERN.search(raw)
    if not match:
        return None, None
    currency = match.group(2).upper() if match.group(2) else "USD"
    return float(match.group(1)), currency


def parse_expiration(raw: Optional[str]) -> Optional[str]:
    """
    Convert an expiration value to an ISO date.

    Dynadot reports milliseconds since the epoch; ISO strings are accepted
    too. Unparseable values are returned unchanged.
    """
    if not raw:
        return None
    if raw.isdigit():
        moment = datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
        return moment.date().isoformat()
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return raw


def raise_for_api_error(root: ET.Element, command: str) -> None:
    """
    Raise RegistrarError if the response carries an error payload.

    An error payload is any non-empty ``Error`` element, or a
    ``SuccessCode``/``ResponseCode`` of -1.
    """
    for element in root.iter("Error"):
        if element.text and element.text.strip():
            raise RegistrarError(
                code=RegistrarErrorCode.API_ERROR.value,
                message=element.text.strip(),
                details={"command": command},
            )

    for tag in ("SuccessCode", "ResponseCode"):
        for element in root.iter(tag):
            if (element.text or "").strip() in FAILURE_CODES:
                raise RegistrarError(
                    code=RegistrarErrorCode.API_ERROR.value,
                    message="Dynadot API error",
                    details={"command": command, tag: element.text},
                )


def map_search_result(
    root: ET.Element,
    requested_domain: str,
    logger: Optional[AuditLogger] = None,
) -> SearchResult:
    """
    Map a ``search`` response onto SearchResult.

    Raises:
        RegistrarError: If no known search result element is present
    """
    element, index = find_first(root, SEARCH_RESULT_PATHS)
    if element is None:
        raise RegistrarError(
            code=RegistrarErrorCode.PARSE_ERROR.value,
            message="Invalid response from Dynadot",
            details={"command": "search", "root": root.tag},
        )
    if index > 0 and logger:
        logger.warn(
            COMPONENT,
            "Search response matched fallback path",
            {"path": SEARCH_RESULT_PATHS[index], "domain": requested_domain},
        )

    price, currency = parse_price(field_text(element, ("Price",)))
    explicit_currency = field_text(element, ("Currency",))
    if price is not None and explicit_currency:
        currency = explicit_currency.strip().upper()
    return SearchResult(
        domain=field_text(element, ("DomainName",)) or requested_domain,
        available=(field_text(element, ("Available",)) or "").lower() == "yes",
        price=price,
        currency=currency,
    )


def map_domain_list(
    root: ET.Element,
    logger: Optional[AuditLogger] = None,
) -> list[RegisteredDomain]:
    """Map a ``list_domain`` response onto RegisteredDomain entries."""
    elements, index = find_all_first(root, DOMAIN_INFO_PATHS)
    if not elements:
        if logger:
            logger.info(COMPONENT, "No domains found in list response", {"root": root.tag})
        return []
    if index > 0 and logger:
        logger.warn(
            COMPONENT,
            "Domain list matched fallback path",
            {"path": DOMAIN_INFO_PATHS[index]},
        )

    domains = []
    for element in elements:
        name = field_text(element, DOMAIN_NAME_FIELDS)
        if not name:
            if logger:
                logger.warn(COMPONENT, "Skipping domain entry without a name", {})
            continue
        domains.append(RegisteredDomain(
            domain=name.lower(),
            expiration=parse_expiration(field_text(element, EXPIRATION_FIELDS)),
            status=field_text(element, STATUS_FIELDS) or "active",
        ))
    return domains


class DynadotClient:
    """
    Async client for the Dynadot ``api3.xml`` interface.

    Every call passes through the shared rate limiter, which serializes
    access to the single registrar account.
    """

    def __init__(
        self,
        config: RegistrarConfig,
        rate_limiter: Optional[RateLimiter] = None,
        logger: Optional[AuditLogger] = None,
        simulation_mode: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the registrar client.

        Args:
            config: Registrar configuration (API key, base URL, timeout)
            rate_limiter: Optional limiter shared by all registrar calls
            logger: Optional audit logger
            simulation_mode: If True, no network requests are made
            transport: Optional httpx transport (used by tests)
        """
        self._config = config
        self._rate_limiter = rate_limiter
        self._logger = logger
        self._simulation_mode = simulation_mode
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "DynadotClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def simulation_mode(self) -> bool:
        return self._simulation_mode

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                verify=True,
                timeout=httpx.Timeout(self._config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def search_domain(self, domain: str) -> SearchResult:
        """
        Look up availability and price of one domain.

        Raises:
            RegistrarError: If the lookup could not be completed
        """
        if self._simulation_mode:
            # Conservative: nothing is ever reported as available
            return SearchResult(domain=domain, available=False)

        ascii_domain = to_ascii_domain(domain)
        root = await self._request("search", {"domain0": ascii_domain, "show_price": "1"})
        return map_search_result(root, domain, self._logger)

    async def register_domain(self, domain: str, duration_years: int = 1) -> OperationResult:
        """Register ``domain`` for ``duration_years``. Never retried."""
        if self._simulation_mode:
            return OperationResult(True, f"[simulation] Domain {domain} not registered")

        try:
            await self._request(
                "register",
                {"domain": to_ascii_domain(domain), "duration": str(duration_years)},
            )
        except (RegistrarError, ValidationError) as e:
            return OperationResult(False, e.message or "Registration failed")

        return OperationResult(
            True,
            f"Domain {domain} successfully registered for {duration_years} year(s)",
        )

    async def set_email_forward(
        self, domain: str, forwards: Sequence[EmailForward]
    ) -> OperationResult:
        """Forward each ``username@domain`` to its destination mailbox."""
        if not forwards:
            return OperationResult(False, "At least one email forward is required")
        if self._simulation_mode:
            return OperationResult(True, "[simulation] Email forwarding not changed")

        try:
            params = {"domain": to_ascii_domain(domain), "forward_type": "forward"}
            for i, forward in enumerate(forwards):
                params[f"username{i}"] = forward.username
                params[f"exist_email{i}"] = forward.forward_to
            await self._request("set_email_forward", params)
        except (RegistrarError, ValidationError) as e:
            return OperationResult(False, e.message or "Failed to set email forwarding")

        return OperationResult(True, "Email forwarding configured successfully")

    async def set_url_forwarding(
        self, domain: str, url: str, is_permanent: bool = True
    ) -> OperationResult:
        """Redirect HTTP requests for ``domain`` to ``url`` (301 if permanent, else 302)."""
        target = normalize_forward_url(url)
        if self._simulation_mode:
            return OperationResult(True, f"[simulation] Forwarding to {target} not changed")

        try:
            params = {"domain": to_ascii_domain(domain), "forward_url": target}
            # Dynadot defaults to a temporary (302) redirect
            if is_permanent:
                params["is_temp"] = "no"
            await self._request("set_forwarding", params)
        except (RegistrarError, ValidationError) as e:
            return OperationResult(False, e.message or "Failed to set URL forwarding")

        return OperationResult(
            True,
            f"Domain {domain} forwarding to {target} configured successfully",
        )

    async def list_domains(self) -> list[RegisteredDomain]:
        """List every domain in the account."""
        if self._simulation_mode:
            return []
        root = await self._request("list_domain", {})
        return map_domain_list(root, self._logger)

    async def _request(self, command: str, params: dict[str, str]) -> ET.Element:
        """Perform one API call and return the parsed XML root."""
        if not self._config.api_key:
            raise RegistrarError(
                code=RegistrarErrorCode.CONFIG_ERROR.value,
                message="DYNADOT_API_KEY not configured",
                details={"command": command},
            )

        query = {"key": self._config.api_key, "command": command, **params}

        if self._rate_limiter is not None:
            async with self._rate_limiter.acquire(command) as status:
                if status.wait_seconds > 0:
                    self._log(LogLevel.DEBUG, "Rate limit wait applied", {
                        "command": command,
                        "wait_seconds": status.wait_seconds,
                        "reason": status.reason,
                    })
                response = await self._send(command, query)
        else:
            response = await self._send(command, query)

        return self._parse(command, response)

    async def _send(self, command: str, query: dict[str, str]) -> httpx.Response:
        client = self._ensure_client()
        start_time = time.perf_counter()
        try:
            response = await client.get(self._config.base_url, params=query)
        except httpx.TimeoutException:
            raise RegistrarError(
                code=RegistrarErrorCode.TIMEOUT.value,
                message=f"Registrar request timed out after {self._config.timeout_seconds}s",
                details={"command": command},
            )
        except httpx.HTTPError as e:
            raise RegistrarError(
                code=RegistrarErrorCode.NETWORK_ERROR.value,
                message=f"Connection error: {e}",
                details={"command": command},
            )

        self._log(LogLevel.DEBUG, f"Dynadot API [{command}] response", {
            "command": command,
            "http_status": response.status_code,
            "response_time_ms": (time.perf_counter() - start_time) * 1000,
        })
        return response

    def _parse(self, command: str, response: httpx.Response) -> ET.Element:
        status = response.status_code
        if status in (429, 503) and self._rate_limiter is not None:
            self._rate_limiter.apply_adaptive_delay(command, status)

        if status == 429:
            raise RegistrarError(
                code=RegistrarErrorCode.RATE_LIMITED.value,
                message="Rate limited by registrar",
                details={"command": command, "http_status": status},
            )
        if status >= 500:
            raise RegistrarError(
                code=RegistrarErrorCode.SERVER_ERROR.value,
                message=f"Registrar server error: {status}",
                details={"command": command, "http_status": status},
            )
        if status != 200:
            raise RegistrarError(
                code=RegistrarErrorCode.API_ERROR.value,
                message=f"Unexpected HTTP status: {status}",
                details={"command": command, "http_status": status},
            )

        if self._rate_limiter is not None:
            self._rate_limiter.reset_error_count(command)

        try:
            root = ET.fromstring(response.text)
        except ET.ParseError as e:
            raise RegistrarError(
                code=RegistrarErrorCode.PARSE_ERROR.value,
                message=f"Failed to parse registrar response: {e}",
                details={"command": command},
            )

        raise_for_api_error(root, command)
        return root

    def _log(self, level: LogLevel, message: str, data: dict) -> None:
        if self._logger:
            self._logger.log(level, COMPONENT, message, data)
