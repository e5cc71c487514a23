"""
Pull request composition for govpub.

Opens the reviewable change for a publish branch, generating a title
and body from a ChangeSummary when the caller does not supply them.
Not idempotent: each call opens a new pull request.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..domain.publish import Actor, PullRequest
from ..exit_codes import ValidationError
from ..infra.github_client import GitHubClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChangeSummary:
    """
    What a publish changes, for the default pull request text.

    Attributes:
        label: Document kind, e.g. "JSON Schema"
        name: Document name, e.g. "address-v1.json"
        is_update: Whether the document already existed
        subject: Body phrase after "This PR adds|updates"; defaults to the label and name
        details: Extra body lines, e.g. "**Type:** Entity Logo"
        items: Bullet list entries, e.g. one per vocabulary type
        items_heading: Heading shown above the bullets
        title: Full default title overriding "Add|Update <label>: <name>"
    """
    label: str
    name: str
    is_update: bool = False
    subject: Optional[str] = None
    details: List[str] = field(default_factory=list)
    items: List[str] = field(default_factory=list)
    items_heading: Optional[str] = None
    title: Optional[str] = None


class PullRequestComposer:
    """
    Open pull requests with generated, attributed descriptions.

    Example:
        composer = PullRequestComposer(client, app_name="Cornerstone Network Apps")
        pr = composer.open(
            head="schema/add-address-v1-1718035200123",
            base="main",
            summary=ChangeSummary(label="JSON Schema", name="address-v1.json"),
            actor=Actor(login="octocat"),
        )
    """

    def __init__(self, client: GitHubClient, app_name: str = "", app_url: str = ""):
        self.client = client
        self.app_name = app_name
        self.app_url = app_url

    def default_title(self, summary: ChangeSummary) -> str:
        if summary.title:
            return summary.title
        action = "Update" if summary.is_update else "Add"
        return f"{action} {summary.label}: {summary.name}"

    def footer(self, actor: Actor) -> str:
        if self.app_name and self.app_url:
            return f"Created by @{actor.login} using the [{self.app_name}]({self.app_url})."
        if self.app_name:
            return f"Created by @{actor.login} using the {self.app_name}."
        return f"Created by @{actor.login}."

    def default_body(self, summary: ChangeSummary, actor: Actor) -> str:
        noun = summary.label if summary.label.endswith("file") else f"{summary.label} file"
        if summary.is_update:
            verb, subject = "updates", f"the {noun}: `{summary.name}`"
        else:
            verb, subject = "adds", f"a new {noun}: `{summary.name}`"
        sections = [f"This PR {verb} {summary.subject or subject}"]

        if summary.details:
            sections.append("\n".join(summary.details))
        if summary.items:
            bullets = "\n".join(f"- {item}" for item in summary.items)
            if summary.items_heading:
                bullets = f"**{summary.items_heading}:**\n{bullets}"
            sections.append(bullets)

        sections.append(self.footer(actor))
        return "\n\n".join(sections)

    def open(
        self,
        head: str,
        base: str,
        summary: ChangeSummary,
        actor: Actor,
        title: Optional[str] = None,
        body: Optional[str] = None,
    ) -> PullRequest:
        """
        Open a pull request from `head` into `base`.

        Caller-supplied title and body win over the generated ones.
        """
        if not head or not base:
            raise ValidationError("Head and base branches are required")

        pull_request = self.client.create_pull_request(
            head=head,
            base=base,
            title=title or self.default_title(summary),
            body=body or self.default_body(summary, actor),
        )
        logger.info(f"Opened pull request #{pull_request.number}: {pull_request.url}")
        return pull_request
