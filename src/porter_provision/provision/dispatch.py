"""Create or update a CloudFormation stack.

CreateStack and UpdateStack differ only in the API call and its request shape,
so the caller picks a strategy and the dispatcher handles everything around
it.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from porter_provision.errors import DispatchError
from porter_provision.models import StackOperationInput

logger = logging.getLogger(__name__)

DEFAULT_CAPABILITIES = ("CAPABILITY_IAM", "CAPABILITY_NAMED_IAM")


class StackStrategy(ABC):
    """One CloudFormation stack operation."""
    name = "stack"

    def __init__(self, stack_name: str, capabilities: Sequence[str] = DEFAULT_CAPABILITIES):
        self.stack_name = stack_name
        self.capabilities = list(capabilities)

    def request(self, op_input: StackOperationInput) -> Dict[str, Any]:
        return {
            'StackName': self.stack_name,
            'TemplateURL': op_input.template_url,
            'Parameters': [
                {'ParameterKey': key, 'ParameterValue': value}
                for key, value in op_input.parameters().items()
            ],
            'Capabilities': self.capabilities,
        }

    @abstractmethod
    def __call__(self, cfn_client: Any, op_input: StackOperationInput) -> str:
        """Issue the stack call and return the stack id."""


class CreateStack(StackStrategy):
    name = "CreateStack"

    def __init__(self, stack_name: str, capabilities: Sequence[str] = DEFAULT_CAPABILITIES,
                 tags: Optional[Mapping[str, str]] = None, on_failure: str = "DELETE",
                 timeout_in_minutes: Optional[int] = None):
        super().__init__(stack_name, capabilities)
        self.tags = dict(tags or {})
        self.on_failure = on_failure
        self.timeout_in_minutes = timeout_in_minutes

    def request(self, op_input: StackOperationInput) -> Dict[str, Any]:
        request = super().request(op_input)
        request['OnFailure'] = self.on_failure
        if self.tags:
            request['Tags'] = [{'Key': k, 'Value': v} for k, v in self.tags.items()]
        if self.timeout_in_minutes:
            request['TimeoutInMinutes'] = self.timeout_in_minutes
        return request

    def __call__(self, cfn_client: Any, op_input: StackOperationInput) -> str:
        return cfn_client.create_stack(**self.request(op_input))['StackId']


class UpdateStack(StackStrategy):
    name = "UpdateStack"

    def __call__(self, cfn_client: Any, op_input: StackOperationInput) -> str:
        return cfn_client.update_stack(**self.request(op_input))['StackId']


STRATEGIES = {
    "create": CreateStack,
    "update": UpdateStack,
}


def strategy_for(operation: str, stack_name: str, **kwargs) -> StackStrategy:
    """Build the strategy for ``"create"`` or ``"update"``."""
    try:
        strategy_class = STRATEGIES[operation]
    except KeyError:
        raise ValueError(f"Unknown stack operation {operation!r}, expected one of {sorted(STRATEGIES)}")
    return strategy_class(stack_name, **kwargs)


class StackDispatcher:
    """Runs a stack strategy and reports the stack id, or None on failure."""

    def __init__(self, strategy: StackStrategy):
        self.strategy = strategy

    def dispatch(self, cfn_client: Any, op_input: StackOperationInput) -> Optional[str]:
        try:
            self.validate(op_input)
            logger.info(f"{self.strategy.name} {self.strategy.stack_name} in {op_input.region}")
            try:
                stack_id = self.strategy(cfn_client, op_input)
            except (ClientError, BotoCoreError) as e:
                raise DispatchError(self.strategy.name, e) from e
            except KeyError as e:
                raise DispatchError(self.strategy.name, f"response without {e}") from e
            if not stack_id:
                raise DispatchError(self.strategy.name, "empty StackId")
        except DispatchError as e:
            logger.error(f"Stack dispatch failed: {e}")
            return None

        logger.info(f"{self.strategy.name} accepted: {stack_id}")
        return stack_id

    def validate(self, op_input: StackOperationInput) -> None:
        if not self.strategy.stack_name:
            raise DispatchError(self.strategy.name, "empty stack name")
        if not op_input.template_url:
            raise DispatchError(self.strategy.name, "empty template URL")
