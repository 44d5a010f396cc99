"""Domain list expansion."""

from collections.abc import Iterable


def get_all_domains(domain: str, addon_domains: Iterable[str] = ()) -> list[str]:
    """Return every domain a certificate for ``domain`` should cover.

    Each requested name is kept; a root domain such as ``example.com`` also
    gets its ``www.`` sibling, and ``www.example.com`` also gets the bare
    ``example.com``. Order is preserved and duplicates are dropped.

    >>> get_all_domains("example.com", ["foo.example.com"])
    ['example.com', 'www.example.com', 'foo.example.com']
    """
    all_domains: list[str] = []
    for name in [domain, *addon_domains]:
        all_domains.append(name)
        dots = name.count(".")
        if dots == 1:
            all_domains.append(f"www.{name}")
        elif dots == 2 and name.startswith("www."):
            all_domains.append(name[4:])
    return list(dict.fromkeys(all_domains))
