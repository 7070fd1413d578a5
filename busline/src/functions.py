from typing import List, Type, Dict, Any
from pydantic import BaseModel

from busline.src import schemas
from busline.src.exceptions import APIException


def fuseExceptionResponses(exceptions: List[APIException]) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation by fusing multiple APIException instances.

    Args:
        exceptions (List[APIException]): List of instantiated exceptions.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        status_code = exception.status_code
        example_key = type(exception).__name__
        example_value = {
            "summary": str(exception.headers),
            "value": {"detail": exception.detail},
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Each enum member is formatted as "<NAME>: <VALUE>".

    Args:
        enumClass (Type[Enum]): The Enum class to be stringified.

    Returns:
        str: A human-readable string representation of the enum members.

    Example:
        >>> enumStr(BookingStatus)
        'ACTIVE: 1, COMPLETED: 2, CANCELLED: 3'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Check if a state transition is valid.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
            Example:
                {
                    "ACTIVE": ["COMPLETED", "CANCELLED"],
                    "COMPLETED": [],
                }
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.

    Returns:
        bool: True if transition is valid, False otherwise.

    Notes:
        - If `old_state` is not in the transitions mapping, this will return False.
    """
    if not transitions:
        return False
    if old_state not in transitions:
        return False
    return new_state in transitions[old_state]


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> None:
    """
    Update attributes on a target object from a source object
    only if the values differ and the new value is not None.

    Only the attributes named in `fields` are ever touched, so the list
    acts as the allow-list of updatable columns.

    Args:
        targetObj (object): The object whose attributes may be updated
            (e.g., a SQLAlchemy model instance).
        sourceObj (object): The object providing new values
            (e.g., an update form).
        fields (List[str]): Attribute names to check and update.
            Commonly passed as `[Model.field.key, ...]`.

    Example:
        >>> updateIfChanged(bus, fParam, [Bus.seat_count.key, Bus.is_active.key])
        # bus will be updated where values differ; unchanged fields are skipped silently
    """
    for field in fields:
        new_value = getattr(sourceObj, field, None)
        if new_value is not None:
            old_value = getattr(targetObj, field)
            if old_value != new_value:
                setattr(targetObj, field, new_value)


def promoteToParent(
    childObj: BaseModel, targetCls: Type[BaseModel], **overrides
) -> BaseModel:
    """
    Promote one Pydantic model into another, applying overrides
    and defaulting missing fields to None.

    Useful when a narrower query model needs to be adapted into a broader
    one, e.g. a passenger's booking query into the admin query with the
    `user_id` filter pinned to the caller.

    Args:
        childObj (BaseModel): The source Pydantic model instance.
        targetCls (Type[BaseModel]): The target Pydantic model class.
        **overrides: Explicit field values to override in the target model.

    Returns:
        BaseModel: An instance of `targetCls`.
    """
    baseData = childObj.model_dump()
    targetFields = targetCls.model_fields.keys()
    finalData = {
        field: overrides.get(field, baseData.get(field, None)) for field in targetFields
    }
    return targetCls(**finalData)
