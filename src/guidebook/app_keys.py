"""Application keys for type-safe app configuration access."""

from aiohttp import web

from guidebook.config import Config
from guidebook.core.cache import PageCache
from guidebook.core.navigation import NavigationBuilder
from guidebook.core.renderer import PageRenderer

renderer_key = web.AppKey("renderer", PageRenderer)
navigation_key = web.AppKey("navigation", NavigationBuilder)
cache_key = web.AppKey("cache", PageCache)
config_key = web.AppKey("config", Config)
verbose_key = web.AppKey("verbose", bool)
