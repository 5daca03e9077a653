from dataclasses import dataclass, field, replace

from batchrun.tasks.command import placeholders


@dataclass
class BatchConfig:
    total: int
    command: str
    # None means one slot per task, resolved against the final total.
    concurrency: int | None = None
    label: str = "task #{number}"
    env: dict[str, str] = field(default_factory=dict)
    working_dir: str | None = None
    require_env: list[str] = field(default_factory=list)
    progress_interval: float = 0.1

    @property
    def resolved_concurrency(self) -> int:
        if self.concurrency is not None:
            return self.concurrency
        return max(self.total, 1)

    def with_overrides(
        self, *, total: int | None = None, concurrency: int | None = None
    ) -> "BatchConfig":
        if total is not None and total < 0:
            raise ConfigError(f"total must not be negative, got {total}")
        if concurrency is not None and concurrency < 1:
            raise ConfigError(f"concurrency must be at least 1, got {concurrency}")

        updated = self
        if total is not None:
            check_label(updated.label, total)
            updated = replace(updated, total=total)
        if concurrency is not None:
            updated = replace(updated, concurrency=concurrency)
        return updated

    def items(self) -> list[tuple[str, object]]:
        return [
            ("total", self.total),
            ("concurrency", self.resolved_concurrency),
            ("command", self.command),
            ("label", self.label),
            ("env", " ".join(sorted(self.env))),
            ("working_dir", self.working_dir or ""),
            ("require_env", " ".join(self.require_env)),
            ("progress_interval", self.progress_interval),
        ]


def check_template(key: str, template: str, total: int) -> None:
    try:
        template.format_map(placeholders(0, total))
    except KeyError as exc:
        raise ConfigError(
            f"batch: Unknown placeholder {{{exc.args[0]}}} in {key}, "
            "expected {index}, {number} or {total} "
            "(use {{ and }} for literal braces)"
        ) from exc
    except (ValueError, IndexError, AttributeError, TypeError) as exc:
        raise ConfigError(
            f"batch: Malformed {key} template: {exc} "
            "(use {{ and }} for literal braces)"
        ) from exc


def check_label(label: str, total: int) -> None:
    if total > 1 and label.format_map(placeholders(0, total)) == label.format_map(
        placeholders(1, total)
    ):
        raise ConfigError(
            f"batch: The label {label!r} must contain {{index}} or {{number}} "
            f"to tell {total} tasks apart"
        )


class ConfigError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedConfigFormatError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)
