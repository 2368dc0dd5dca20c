import httpx
import pytest
import respx

from skinmod_manager.origins.base import InvalidOriginError, MalformedResponseError, NetworkError
from skinmod_manager.origins.manifest import ManifestUrlSource
from skinmod_manager.registry.types import OriginDescriptor

URL = "https://mods.example.com/hero-skin/latest.json"


def _origin(locator: str = URL, **options: str) -> OriginDescriptor:
    return OriginDescriptor.build("manifest_url", locator, options)


class TestManifestUrlSource:
    @respx.mock
    @pytest.mark.asyncio
    async def test_version_and_hint(self):
        respx.get(URL).mock(
            return_value=httpx.Response(
                200, json={"version": " 1.4.2 ", "download_url": "https://cdn.example.com/1.4.2.zip"}
            )
        )
        async with httpx.AsyncClient() as http:
            info = await ManifestUrlSource(http).fetch_latest(_origin())
        assert info.version == "1.4.2"
        assert info.download_hint == "https://cdn.example.com/1.4.2.zip"

    @respx.mock
    @pytest.mark.asyncio
    async def test_nested_version_key(self):
        respx.get(URL).mock(
            return_value=httpx.Response(200, json={"release": {"tag": "2024.6"}, "url": "u"})
        )
        async with httpx.AsyncClient() as http:
            info = await ManifestUrlSource(http).fetch_latest(_origin(version_key="release.tag"))
        assert info.version == "2024.6"
        assert info.download_hint == "u"

    @respx.mock
    @pytest.mark.asyncio
    async def test_numeric_version(self):
        respx.get(URL).mock(return_value=httpx.Response(200, json={"version": 3}))
        async with httpx.AsyncClient() as http:
            info = await ManifestUrlSource(http).fetch_latest(_origin())
        assert info.version == "3"
        assert info.download_hint is None

    @respx.mock
    @pytest.mark.asyncio
    async def test_missing_key_is_malformed(self):
        respx.get(URL).mock(return_value=httpx.Response(200, json={"name": "Hero"}))
        async with httpx.AsyncClient() as http:
            with pytest.raises(MalformedResponseError, match="version"):
                await ManifestUrlSource(http).fetch_latest(_origin())

    @respx.mock
    @pytest.mark.asyncio
    async def test_non_object_is_malformed(self):
        respx.get(URL).mock(return_value=httpx.Response(200, json=["1.0"]))
        async with httpx.AsyncClient() as http:
            with pytest.raises(MalformedResponseError):
                await ManifestUrlSource(http).fetch_latest(_origin())

    @respx.mock
    @pytest.mark.asyncio
    async def test_empty_version_is_malformed(self):
        respx.get(URL).mock(return_value=httpx.Response(200, json={"version": "  "}))
        async with httpx.AsyncClient() as http:
            with pytest.raises(MalformedResponseError):
                await ManifestUrlSource(http).fetch_latest(_origin())

    @respx.mock
    @pytest.mark.asyncio
    async def test_server_error(self):
        respx.get(URL).mock(return_value=httpx.Response(500))
        async with httpx.AsyncClient() as http:
            with pytest.raises(NetworkError):
                await ManifestUrlSource(http).fetch_latest(_origin())

    @pytest.mark.asyncio
    async def test_non_http_locator(self):
        async with httpx.AsyncClient() as http:
            with pytest.raises(InvalidOriginError):
                await ManifestUrlSource(http).fetch_latest(_origin("file:///etc/passwd"))

    @pytest.mark.asyncio
    async def test_unparseable_url_is_invalid_origin(self):
        async with httpx.AsyncClient() as http:
            with pytest.raises(InvalidOriginError, match="Invalid origin URL"):
                await ManifestUrlSource(http).fetch_latest(_origin("https://mods.example.com:abc/m.json"))
