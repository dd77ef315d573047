"""
Publishing of generated pages to Hugging Face Spaces.

A publish call either creates a new static Space from a title or updates
an existing one, and always lands its files in a single commit.
"""

import random
import re

from pydantic import BaseModel

from sitekernel.core.hub import HubClient, HubError, HubFile
from sitekernel.utils.colors import COLORS
from sitekernel.utils.logging import get_logger


logger = get_logger("publish")

SLUG_MAX_LENGTH = 96
SPACE_TAG = "deepsite"

_NON_ALNUM = re.compile(r"[^a-z0-9]+")

ATTRIBUTION_TEMPLATE = (
    '<p style="border-radius: 8px; text-align: center; font-size: 12px; color: #fff; '
    "margin-top: 16px;position: fixed; left: 8px; bottom: 8px; z-index: 10; "
    'background: rgba(0, 0, 0, 0.8); padding: 4px 8px;">Made with '
    '<img src="{app_url}/logo.svg" alt="DeepSite Logo" style="width: 16px; height: 16px; '
    'vertical-align: middle;display:inline-block;margin-right:3px;filter:brightness(0) invert(1);">'
    '<a href="{app_url}" style="color: #fff;text-decoration: underline;" target="_blank" >DeepSite</a>'
    ' - 🧬 <a href="{app_url}?remix={repo_id}" style="color: #fff;text-decoration: underline;" '
    'target="_blank" >Remix</a></p>'
)

README_TEMPLATE = """---
title: {title}
emoji: 🐳
colorFrom: {color_from}
colorTo: {color_to}
sdk: static
pinned: false
tags:
  - {tag}
---

Check out the configuration reference at https://huggingface.co/docs/hub/spaces-config-reference"""


class PublishError(Exception):
    """Base class for publish failures."""

    status_code = 500


class PublishValidationError(PublishError):
    status_code = 400


class IdentityResolutionError(PublishError):
    pass


class RepositoryCreationError(PublishError):
    pass


class UploadError(PublishError):
    pass


def slugify(title: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase, dash-separated Space name derived from a human title."""
    slug = _NON_ALNUM.sub("-", title.lower()).strip("-")
    return slug[:max_length].rstrip("-")


def attribution_fragment(repo_id: str, app_url: str) -> str:
    return ATTRIBUTION_TEMPLATE.format(app_url=app_url, repo_id=repo_id)


def strip_attribution(html: str, repo_id: str, app_url: str) -> str:
    return html.replace(attribution_fragment(repo_id, app_url), "")


def inject_attribution(html: str, repo_id: str, app_url: str) -> str:
    """Place the attribution badge right before the first closing body tag."""
    fragment = attribution_fragment(repo_id, app_url)
    html = html.replace(fragment, "")
    return html.replace("</body>", f"{fragment}</body>", 1)


def build_readme(title: str, color_from: str, color_to: str) -> str:
    return README_TEMPLATE.format(
        title=title,
        color_from=color_from,
        color_to=color_to,
        tag=SPACE_TAG,
    )


class PublishBundle(BaseModel):
    """Everything that lands in one commit."""

    namespace: str
    html_content: str
    prompts_log: str
    readme: str | None = None

    def files(self) -> list[HubFile]:
        files = [
            HubFile(path="index.html", content=self.html_content),
            HubFile(path="prompts.txt", content=self.prompts_log),
        ]
        if self.readme is not None:
            files.append(HubFile(path="README.md", content=self.readme))
        return files


class PublishWorkflow:
    """Creates or updates a static Space holding a generated page."""

    def __init__(self, hub: HubClient, app_url: str, rng: random.Random | None = None):
        self.hub = hub
        self.app_url = app_url
        self._rng = rng or random.Random()

    async def publish(
        self,
        token: str,
        html: str,
        prompts: list[str],
        title: str | None = None,
        path: str | None = None,
    ) -> str:
        """
        Publish `html` and its prompt history.

        Args:
            token: Hub access token of the publishing user
            html: Generated page
            prompts: Prompt history, oldest first
            title: Human title, used when creating a new Space
            path: Existing Space id (`account/name`) to update instead

        Returns:
            Id of the Space the files were committed to

        Raises:
            PublishError: One subclass per failing step
        """
        if not html or (not path and not title):
            raise PublishValidationError("Missing required fields")

        readme = None
        if path:
            namespace = path
        else:
            slug = slugify(title)
            if not slug:
                raise PublishValidationError("Title must contain at least one letter or digit")

            try:
                account = await self.hub.whoami(token)
            except HubError as e:
                raise IdentityResolutionError(f"Could not resolve account: {e}") from e

            namespace = f"{account}/{slug}"
            try:
                await self.hub.create_space(token, namespace)
            except HubError as e:
                raise RepositoryCreationError(f"Could not create {namespace}: {e}") from e

            readme = build_readme(
                slug,
                color_from=self._rng.choice(COLORS),
                color_to=self._rng.choice(COLORS),
            )

        bundle = PublishBundle(
            namespace=namespace,
            html_content=inject_attribution(html, namespace, self.app_url),
            prompts_log="\n".join(prompts),
            readme=readme,
        )

        try:
            await self.hub.upload_files(token, namespace, bundle.files())
        except HubError as e:
            if readme is not None:
                # No rollback: the freshly created Space stays empty.
                logger.warning(f"Upload to new space {namespace} failed, space left empty")
            raise UploadError(f"Could not upload to {namespace}: {e}") from e

        logger.info(f"Published {namespace}")
        return namespace
