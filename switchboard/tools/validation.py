import jsonschema

from switchboard.tools.base import normalize_schema


class ArgumentValidator:
    @staticmethod
    def validate(schema: dict, arguments: dict) -> tuple[bool, str | None]:
        try:
            jsonschema.validate(
                instance=arguments,
                schema=normalize_schema(schema),
            )
            return True, None
        except jsonschema.ValidationError as e:
            where = ".".join(str(p) for p in e.absolute_path)
            if where:
                return False, f"{where}: {e.message}"
            return False, str(e.message)
