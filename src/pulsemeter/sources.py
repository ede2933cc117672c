"""Classify user agents into sources and web hosts into known sites."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from urllib.parse import urlparse

from .models import Source, UserAgentActivity


@dataclass(frozen=True)
class SourceDetails:
    name: str
    display_name: str
    type: str  # "code" or "web"


# Order matters: first match wins.
SOURCE_PATTERNS: tuple[tuple[str, re.Pattern], ...] = (
    ("cursor", re.compile(r"\bcursor\b", re.IGNORECASE)),
    ("vscode", re.compile(r"vscode|visual studio code", re.IGNORECASE)),
    (
        "jetbrains",
        re.compile(
            r"jetbrains|intellij|pycharm|webstorm|goland|phpstorm|rubymine|clion|rider|datagrip|android ?studio",
            re.IGNORECASE,
        ),
    ),
    ("sublime", re.compile(r"sublime", re.IGNORECASE)),
    ("neovim", re.compile(r"neovim|\bnvim\b", re.IGNORECASE)),
    ("vim", re.compile(r"\bvim\b", re.IGNORECASE)),
    ("emacs", re.compile(r"emacs", re.IGNORECASE)),
    ("xcode", re.compile(r"xcode", re.IGNORECASE)),
    ("zed", re.compile(r"\bzed\b", re.IGNORECASE)),
    ("edge", re.compile(r"\bedge\b|\bedg/", re.IGNORECASE)),
    ("brave", re.compile(r"\bbrave\b", re.IGNORECASE)),
    ("arc", re.compile(r"\barc\b", re.IGNORECASE)),
    ("firefox", re.compile(r"firefox", re.IGNORECASE)),
    ("chrome", re.compile(r"chrome", re.IGNORECASE)),
    ("safari", re.compile(r"safari", re.IGNORECASE)),
)

SOURCE_DETAILS: dict[str, SourceDetails] = {
    d.name: d
    for d in (
        SourceDetails("cursor", "Cursor", "code"),
        SourceDetails("vscode", "VS Code", "code"),
        SourceDetails("jetbrains", "JetBrains", "code"),
        SourceDetails("sublime", "Sublime Text", "code"),
        SourceDetails("neovim", "Neovim", "code"),
        SourceDetails("vim", "Vim", "code"),
        SourceDetails("emacs", "Emacs", "code"),
        SourceDetails("xcode", "Xcode", "code"),
        SourceDetails("zed", "Zed", "code"),
        SourceDetails("edge", "Edge", "web"),
        SourceDetails("brave", "Brave", "web"),
        SourceDetails("arc", "Arc", "web"),
        SourceDetails("firefox", "Firefox", "web"),
        SourceDetails("chrome", "Chrome", "web"),
        SourceDetails("safari", "Safari", "web"),
    )
}

# Sites tracked in the sites view. Subdomains match their parent.
KNOWN_SITES: tuple[str, ...] = (
    "github.com",
    "gitlab.com",
    "stackoverflow.com",
    "developer.mozilla.org",
    "docs.python.org",
    "chatgpt.com",
    "claude.ai",
    "slack.com",
    "discord.com",
    "linear.app",
    "notion.so",
    "figma.com",
    "google.com",
    "youtube.com",
    "x.com",
    "twitter.com",
    "linkedin.com",
    "reddit.com",
    "news.ycombinator.com",
)


def resolve_source(user_agent: str | None) -> str | None:
    """Return the source name for a user agent, or None if unrecognized."""
    if not user_agent:
        return None
    for name, pattern in SOURCE_PATTERNS:
        if pattern.search(user_agent):
            return name
    return None


def source_details(name: str) -> SourceDetails | None:
    return SOURCE_DETAILS.get(name)


def list_sources(activity: Iterable[UserAgentActivity]) -> list[Source]:
    """Group user agents by source, keeping each source's latest activity.

    Unrecognized agents are left out. Sources appear in first-seen order.
    """
    latest: dict[str, Source] = {}
    for row in activity:
        name = resolve_source(row.user_agent)
        if name is None:
            continue
        current = latest.get(name)
        if current is None or row.last_active > current.last_active:
            latest[name] = Source(name=name, last_active=row.last_active)
    return list(latest.values())


def site_host(entity: str | None) -> str | None:
    """Extract a lowercase host from a URL or bare host, without "www."."""
    if not entity:
        return None
    text = entity.strip().lower()
    host = urlparse(text).hostname if "://" in text else text.split("/", 1)[0]
    if not host:
        return None
    host = host.split(":", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return host or None


def resolve_site(entity: str | None) -> str | None:
    """Return the known site a host or URL belongs to, or None."""
    host = site_host(entity)
    if host is None:
        return None
    for site in KNOWN_SITES:
        if host == site or host.endswith("." + site):
            return site
    return None
