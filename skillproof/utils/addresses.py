from typing import Iterable, List

from skillproof.utils.exceptions import InvalidAddressError


def normalize_address(address) -> str:
    """Return the canonical (stripped, lower-case) form of an address"""
    if not isinstance(address, str) or not address.strip():
        raise InvalidAddressError(address)
    return address.strip().lower()


def normalize_domains(domains: Iterable[str]) -> List[str]:
    """Strip domain tags, keeping order and dropping blanks and repeats"""
    seen = []
    for domain in domains or ():
        tag = domain.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen
