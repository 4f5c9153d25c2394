"""Client utilities for the Tally XML-over-HTTP export interface."""
from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from datetime import date
from typing import Dict, List, Optional
from xml.sax.saxutils import escape

import requests

from ledger_sync.dates import normalize_date
from ledger_sync.models import ZERO, LedgerRecord, RemoteBalance, Sign, Transaction, parse_amount

LOGGER = logging.getLogger(__name__)

ACCOUNT_KINDS = ("Groups", "Ledgers")
PRIMARY = "Primary"

# XML 1.0 forbids these even as character references; Tally emits "&#4; Primary".
_CONTROL_REFS = re.compile(rb"&#(?:[0-8]|1[1-2]|1[4-9]|2[0-9]|3[01]);|&#x(?:[0-8]|[bBcC]|[eEfF]|1[0-9a-fA-F]);")
_CONTROL_BYTES = re.compile(rb"[\x00-\x08\x0b\x0c\x0e-\x1f]")


class TallyAPIError(RuntimeError):
    """Raised when Tally rejects a request or returns something unparseable."""


class TallyConnectionError(TallyAPIError):
    """Raised when the Tally server cannot be reached at all."""


def build_envelope(report_name: str, variables: Dict[str, str]) -> str:
    """Return an "Export Data" request envelope for ``report_name``."""

    static = "".join(f"<{key}>{escape(str(value))}</{key}>" for key, value in variables.items())
    return (
        "<ENVELOPE><HEADER><TALLYREQUEST>Export Data</TALLYREQUEST></HEADER>"
        "<BODY><EXPORTDATA><REQUESTDESC>"
        f"<REPORTNAME>{escape(report_name)}</REPORTNAME>"
        f"<STATICVARIABLES><SVEXPORTFORMAT>$$SysName:XML</SVEXPORTFORMAT>{static}</STATICVARIABLES>"
        "</REQUESTDESC></EXPORTDATA></BODY></ENVELOPE>"
    )


def _text(element: Optional[ET.Element], path: str = ".") -> str:
    if element is None:
        return ""
    found = element.find(path)
    if found is None or found.text is None:
        return ""
    return found.text.strip()


def _at(items: List[ET.Element], index: int) -> str:
    if index >= len(items) or items[index].text is None:
        return ""
    return items[index].text.strip()


def clean_xml(content: bytes) -> bytes:
    return _CONTROL_BYTES.sub(b"", _CONTROL_REFS.sub(b"", content))


def _parent(element: ET.Element) -> Optional[str]:
    parent = _text(element, "PARENT")
    if not parent or parent == PRIMARY:
        return None
    return parent


def parse_account_list(root: ET.Element, kind: str) -> List[LedgerRecord]:
    tag = "GROUP" if kind == "Groups" else "LEDGER"
    records: List[LedgerRecord] = []
    for element in root.iter(tag):
        name = element.get("NAME") or _text(element, "NAME")
        if not name:
            continue
        records.append(
            LedgerRecord(
                name=name,
                parent=_parent(element),
                opening_balance=_text(element, "OPENINGBALANCE"),
            )
        )
    return records


def parse_trial_balance(root: ET.Element) -> Dict[str, RemoteBalance]:
    """Pair each ``DSPACCNAME`` with the ``DSPACCINFO`` at the same position."""

    names = root.findall("DSPACCNAME")
    infos = root.findall("DSPACCINFO")
    balances: Dict[str, RemoteBalance] = {}
    for name_element, info in zip(names, infos):
        name = _text(name_element, "DSPDISPNAME")
        if not name:
            continue
        sign: Optional[Sign] = None
        amount = ZERO
        debit_raw = _text(info, "DSPCLDRAMT/DSPCLDRAMTA")
        credit_raw = _text(info, "DSPCLCRAMT/DSPCLCRAMTA")
        if debit_raw:
            amount, sign = abs(parse_amount(debit_raw)), Sign.DEBIT
        if credit_raw:
            amount, sign = abs(parse_amount(credit_raw)), Sign.CREDIT
        if sign is not None:
            balances[name] = RemoteBalance(amount=amount, sign=sign)
    return balances


def parse_vouchers(root: ET.Element, ledger_name: str = "") -> List[Transaction]:
    """Rebuild voucher rows from the parallel ``DSPVCH*`` columns."""

    dates = root.findall("DSPVCHDATE")
    types = root.findall("DSPVCHTYPE")
    numbers = root.findall("DSPVCHNUMBER")
    accounts = root.findall("DSPVCHLEDACCOUNT")
    debits = root.findall("DSPVCHDRAMT")
    credits = root.findall("DSPVCHCRAMT")

    transactions: List[Transaction] = []
    for index in range(len(dates)):
        debit = abs(parse_amount(_at(debits, index)))
        credit = abs(parse_amount(_at(credits, index)))
        if debit > 0:
            amount, sign = debit, Sign.DEBIT
        elif credit > 0:
            amount, sign = credit, Sign.CREDIT
        else:
            continue
        raw_date = _at(dates, index)
        parsed = normalize_date(raw_date)
        if parsed.defaulted:
            LOGGER.warning("Voucher %d of %s has unparseable date %r; using %s", index, ledger_name, raw_date, parsed.value)
        transactions.append(
            Transaction(
                date=parsed.value,
                voucher_type=_at(types, index),
                voucher_number=_at(numbers, index),
                counter_account=_at(accounts, index),
                amount=amount,
                sign=sign,
            )
        )
    return transactions


class TallyClient:
    """Minimal HTTP client for a Tally instance exposing its XML port."""

    def __init__(
        self,
        *,
        base_url: str = "http://localhost:9000",
        from_date: str = "20210401",
        to_date: Optional[str] = None,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._from_date = from_date
        self._to_date = to_date
        if to_date and to_date < date.today().strftime("%Y%m%d"):
            LOGGER.warning("Voucher window ends on %s, before today; later vouchers will be missing", to_date)
        self._timeout = timeout
        self._session = session or requests.Session()

    def check_connection(self) -> bool:
        """Return False only when nothing is listening on the Tally port."""
        try:
            self._session.request("GET", self._base_url, timeout=2)
        except requests.ConnectionError:
            return False
        except requests.RequestException:
            LOGGER.debug("Tally reachable but connection check failed", exc_info=True)
        return True

    def list_accounts(self, kind: str) -> List[LedgerRecord]:
        if kind not in ACCOUNT_KINDS:
            raise ValueError(f"kind must be one of {ACCOUNT_KINDS}, got {kind!r}")
        root = self._post(build_envelope("List of Accounts", {"ACCOUNTTYPE": kind}))
        records = parse_account_list(root, kind)
        LOGGER.info("Loaded %d %s", len(records), kind.lower())
        return records

    def fetch_balances(self) -> Dict[str, RemoteBalance]:
        root = self._post(
            build_envelope(
                "Trial Balance",
                {
                    "EXPLODEFLAG": "Yes",
                    "DSPSHOWOPENING": "Yes",
                    "DSPSHOWTRANS": "Yes",
                    "DSPSHOWCLOSING": "Yes",
                },
            )
        )
        balances = parse_trial_balance(root)
        LOGGER.info("Parsed %d closing balances", len(balances))
        return balances

    def fetch_transactions(
        self,
        ledger_name: str,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
    ) -> List[Transaction]:
        """Return the vouchers of one ledger.

        The window runs up to today unless a ``to_date`` is configured. Failures
        raise ``TallyAPIError`` so the caller can count them.
        """

        envelope = build_envelope(
            "Ledger Vouchers",
            {
                "LEDGERNAME": ledger_name,
                "SVFROMDATE": from_date or self._from_date,
                "SVTODATE": to_date or self._to_date or date.today().strftime("%Y%m%d"),
            },
        )
        root = self._post(envelope)
        return parse_vouchers(root, ledger_name)

    def _post(self, body: str) -> ET.Element:
        LOGGER.debug("Tally request %s", body)
        try:
            response = self._session.request(
                "POST",
                self._base_url,
                data=body.encode("utf-8"),
                headers={"Content-Type": "text/xml"},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.ConnectionError as exc:
            raise TallyConnectionError(f"Tally not reachable at {self._base_url}: {exc}") from exc
        except requests.RequestException as exc:
            raise TallyAPIError(f"Tally API error: {exc}") from exc
        try:
            return ET.fromstring(clean_xml(response.content))
        except ET.ParseError as exc:
            raise TallyAPIError(f"Tally returned malformed XML: {exc}") from exc
