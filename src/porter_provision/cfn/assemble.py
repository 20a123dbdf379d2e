"""Build the resolved template a region run starts from."""
import logging
from pathlib import Path
from typing import Optional

from porter_provision.cfn.mandatory import MANDATORY_PARAMETERS, MANDATORY_RESOURCE_NAMES
from porter_provision.cfn.template import Template
from porter_provision.errors import LocalIOError, ProvisionError

logger = logging.getLogger(__name__)


class TemplateAssembler:
    """Loads an optional override template and resolves its resources."""

    def assemble(self, override_path: str = "") -> Optional[Template]:
        """Return the resolved template, or None if assembly failed.

        An empty ``override_path`` starts from an empty template. References to
        the mandatory parameters and resources resolve, since mutation adds them.
        """
        try:
            template = self.load(override_path)
            template.parse_resources(provided_parameters=MANDATORY_PARAMETERS,
                                     provided_resources=MANDATORY_RESOURCE_NAMES)
        except ProvisionError as e:
            logger.error(f"Template assembly failed: {e}")
            return None
        return template

    def load(self, override_path: str) -> Template:
        if not override_path:
            return Template()

        logger.info(f"Using custom stack definition {override_path}")
        try:
            raw = Path(override_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise LocalIOError(f"open {override_path}", e) from e
        return Template.loads(raw)
