"""
End-to-end tests of the POST /fetch contract

Substitution of fetched content, an invalid URL and a missing URL parameter.
"""

import pytest

from faleproxy_harness.html import PageSummary, assert_substituted


class TestFetchContract:
    """Subject contract through a running harness"""

    @pytest.mark.asyncio(loop_scope="module")
    @pytest.mark.timeout(15)
    async def test_replaces_yale_with_fale(self, faleproxy):
        """Should replace Yale with Fale in fetched content"""
        response = await faleproxy.client.fetch(faleproxy.fixture_url)

        assert response.status == 200
        assert response.data["success"] is True

        page = PageSummary.from_html(response.content)
        assert page.title == "Fale University Test Page"
        assert page.headings[0] == "Welcome to Fale University"
        assert "Fale University is a private" in page.paragraphs[0]

        # URLs remain unchanged
        assert any("yale.edu" in href for href in page.hrefs)

        # Link text is changed
        assert page.links[0].text == "About Fale"

    @pytest.mark.asyncio(loop_scope="module")
    @pytest.mark.timeout(15)
    async def test_substitution_properties(self, faleproxy):
        """No Yale left in text, one Fale per Yale, links byte-for-byte intact"""
        response = await faleproxy.client.fetch(faleproxy.fixture_url)

        assert_substituted(faleproxy.content_server.body, response.content)

    @pytest.mark.asyncio(loop_scope="module")
    @pytest.mark.timeout(15)
    async def test_invalid_url(self, faleproxy):
        """Should handle invalid URLs"""
        response = await faleproxy.client.expect_error(
            {"url": "not-a-valid-url"}, 500, allow_transport_failure=True
        )

        assert response.status in (500, None)

    @pytest.mark.asyncio(loop_scope="module")
    @pytest.mark.timeout(15)
    async def test_missing_url(self, faleproxy):
        """Should handle missing URL parameter"""
        response = await faleproxy.client.expect_error({}, 400, "URL is required")

        assert response.status == 400
        assert response.error == "URL is required"

    @pytest.mark.asyncio(loop_scope="module")
    @pytest.mark.timeout(15)
    async def test_subject_survives_error_cases(self, faleproxy):
        """Rejected requests do not take the subject down"""
        await faleproxy.client.expect_error({"url": "not-a-valid-url"}, 500, allow_transport_failure=True)
        await faleproxy.client.expect_error({}, 400, "URL is required")

        assert await faleproxy.client.probe()
        assert faleproxy.subject.returncode is None
        assert faleproxy.subject.ready

    @pytest.mark.asyncio(loop_scope="module")
    @pytest.mark.timeout(15)
    async def test_fixture_server_was_used(self, faleproxy):
        """The subject really fetched from the fixture origin"""
        before = faleproxy.content_server.request_count

        await faleproxy.client.fetch(faleproxy.fixture_url)

        assert faleproxy.content_server.request_count == before + 1
