"""
Compiled expression model.

A compiled expression is the triple DynamoDB expects for every expression
parameter: the expression text plus the ExpressionAttributeNames and
ExpressionAttributeValues maps its placeholders refer to.
"""

import re
from typing import Any, Dict

from pydantic import BaseModel, Field

PLACEHOLDER_INDEX_RE = re.compile(r"^[#:]V(\d+)$")


class CompiledExpression(BaseModel):
    """Result of compiling one DSL string."""

    expression: str = Field("", description="Expression text with placeholders")
    names: Dict[str, str] = Field(default_factory=dict, description="'#Vn' -> attribute name")
    values: Dict[str, Dict[str, Any]] = Field(default_factory=dict, description="':Vn' -> wire value")

    @property
    def last_index(self) -> int:
        """Highest placeholder index used, 0 when there are none."""
        indices = [0]
        for placeholder in list(self.names) + list(self.values):
            match = PLACEHOLDER_INDEX_RE.match(placeholder)
            if match:
                indices.append(int(match.group(1)))
        return max(indices)

    @property
    def is_empty(self) -> bool:
        return not self.expression

    def to_params(self, expression_field: str) -> Dict[str, Any]:
        """Build request parameters for a boto3 client call.

        Empty placeholder maps are omitted since DynamoDB rejects them.

        Example:
            >>> compile_expression("beep > 10").to_params("FilterExpression")
            {'FilterExpression': '#V1 > :V2',
             'ExpressionAttributeNames': {'#V1': 'beep'},
             'ExpressionAttributeValues': {':V2': {'N': '10'}}}
        """
        params: Dict[str, Any] = {}
        if self.expression:
            params[expression_field] = self.expression
        if self.names:
            params['ExpressionAttributeNames'] = dict(self.names)
        if self.values:
            params['ExpressionAttributeValues'] = dict(self.values)
        return params
