# src/modules/base.py
"""
Module contract and registry.

A module groups related instructions and reacts to agent lifecycle events:

    class Greeter(ModuleBase):
        def __init__(self) -> None:
            super().__init__("greeter")

        @instruction
        async def wave(self, args, interrupt) -> None:
            ...

The @instruction action table is collected when the class is defined, so a
non-async handler or a duplicate instruction name fails at import time
rather than at dispatch time.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, TypeVar

from instruction.errors import ActionFailed, UnknownAction, UnknownModule
from monitoring.events import EventType
from monitoring.logger import log_event
from spec.modules import InstructionHandler
from spec.types import Vec3


log = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_INSTRUCTION_ATTR = "__instruction_name__"


class ModuleDependencyError(RuntimeError):
    """A module's required module is not mounted. Fatal at startup."""

    def __init__(self, module: str, missing: str) -> None:
        super().__init__(f"{module} requires {missing}, which must be mounted in the module registry")
        self.module = module
        self.missing = missing


def instruction(fn: Optional[F] = None, *, name: Optional[str] = None) -> Any:
    """
    Mark an async method as a dispatchable instruction.

    Usage:
        @instruction
        async def mine_blocks(self, args, interrupt): ...

        @instruction(name="goto")
        async def goto_position(self, args, interrupt): ...
    """

    def mark(func: F) -> F:
        setattr(func, _INSTRUCTION_ATTR, name or func.__name__)
        return func

    if fn is not None:
        return mark(fn)
    return mark


def position_arg(args: Mapping[str, Any], key: str = "position") -> Vec3:
    """Read an {x, y, z} mapping out of instruction args as a Vec3."""
    raw = args.get(key)
    if not isinstance(raw, Mapping):
        raise ActionFailed(code="invalid_args", details={key: raw})
    try:
        return Vec3.from_mapping(raw)
    except ValueError as exc:
        raise ActionFailed(code="invalid_args", details={key: raw}) from exc


class ModuleBase:
    """
    Base implementation of the AgentModule capability.

    Subclasses pass their name and required modules to __init__, override
    on_create_bot()/on_spawn() as needed (calling super().on_create_bot()
    keeps the dependency check), and mark actions with @instruction.
    """

    # instruction name -> function attribute name, built per class
    _instruction_table: Dict[str, str] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        table: Dict[str, str] = {}
        for base in reversed(cls.__mro__[1:]):
            table.update(getattr(base, "_instruction_table", {}))

        for attr_name, value in vars(cls).items():
            instruction_name = getattr(value, _INSTRUCTION_ATTR, None)
            if instruction_name is None:
                continue
            if not inspect.iscoroutinefunction(value):
                raise TypeError(
                    f"{cls.__name__}.{attr_name} is marked @instruction but is not async"
                )
            owner = table.get(instruction_name)
            if owner is not None and owner != attr_name and owner in vars(cls):
                raise ValueError(
                    f"{cls.__name__} defines instruction {instruction_name!r} twice"
                )
            table[instruction_name] = attr_name

        cls._instruction_table = table

    def __init__(self, name: str, required_modules: Sequence[str] = ()) -> None:
        self._name = name
        self._required_modules = tuple(required_modules)
        self._context: Any = None

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def required_modules(self) -> Sequence[str]:
        return self._required_modules

    @property
    def context(self) -> Any:
        """The AgentContext this module is mounted to."""
        if self._context is None:
            raise RuntimeError(f"Module {self._name!r} is not mounted")
        return self._context

    @property
    def is_mounted(self) -> bool:
        return self._context is not None

    @property
    def bot(self) -> Any:
        """Shortcut for the live GameConnection; raises if there is none."""
        bot = self.context.bot
        if bot is None:
            raise RuntimeError("No game connection; run agent.create_bot first")
        return bot

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def mount(self, context: Any) -> None:
        """Bind this module to its AgentContext. A module mounts to one context only."""
        if self._context is not None and self._context is not context:
            raise RuntimeError(f"Module {self._name!r} is already mounted to another agent")
        self._context = context

    def on_create_bot(self) -> None:
        """Default: fail fast if any required module is missing."""
        for required in self._required_modules:
            if required not in self.context.modules:
                raise ModuleDependencyError(self._name, required)

    def on_spawn(self) -> None:
        """Default: nothing to do."""

    # ------------------------------------------------------------------
    # Action table
    # ------------------------------------------------------------------

    def instruction_names(self) -> List[str]:
        return sorted(self._instruction_table)

    def get_instruction(self, name: str) -> InstructionHandler:
        attr_name = self._instruction_table.get(name)
        if attr_name is None:
            raise UnknownAction(
                code="invalid_instruction",
                details={"module": self._name, "instruction": name},
            )
        return getattr(self, attr_name)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r})"


class ModuleRegistry:
    """
    The set of mounted modules, keyed by name.

    Responsibilities:
    - mount modules onto the owning context (names must be unique)
    - resolve (module, instruction) pairs into bound handlers
    - fan lifecycle hooks out to every module in mount order
    """

    def __init__(self, context: Any = None, *, bus: Any = None) -> None:
        self._context = context
        self._bus = bus
        self._modules: Dict[str, ModuleBase] = {}

    # ------------------------------------------------------------------
    # Mapping-ish access
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __iter__(self) -> Iterator[ModuleBase]:
        return iter(list(self._modules.values()))

    def __len__(self) -> int:
        return len(self._modules)

    def names(self) -> List[str]:
        return list(self._modules)

    def get(self, name: str) -> ModuleBase:
        module = self._modules.get(name)
        if module is None:
            raise UnknownModule(code="invalid_module", details={"module": name})
        return module

    # ------------------------------------------------------------------
    # Mounting and resolution
    # ------------------------------------------------------------------

    def mount(self, module: ModuleBase) -> ModuleBase:
        if module.name in self._modules:
            raise ValueError(f"Module {module.name!r} is already mounted")
        if self._context is not None:
            module.mount(self._context)
        self._modules[module.name] = module
        log.debug("Mounted module %s", module.name)
        return module

    def resolve(self, module_name: str, instruction_name: str) -> InstructionHandler:
        """
        Return the bound handler for module_name.instruction_name.

        Raises:
            UnknownModule, UnknownAction
        """
        return self.get(module_name).get_instruction(instruction_name)

    def describe(self) -> Dict[str, List[str]]:
        """module name -> instruction names, for help output."""
        return {name: module.instruction_names() for name, module in self._modules.items()}

    # ------------------------------------------------------------------
    # Lifecycle fan-out
    # ------------------------------------------------------------------

    def create_bot(self) -> None:
        """Run on_create_bot() on every module; the first failure propagates."""
        for module in self:
            module.on_create_bot()
            self._lifecycle_event(module, "create_bot")

    def spawn(self) -> None:
        """Run on_spawn() on every module."""
        for module in self:
            module.on_spawn()
            self._lifecycle_event(module, "spawn")

    def _lifecycle_event(self, module: ModuleBase, hook: str) -> None:
        log.debug("Module %s finished %s", module.name, hook)
        if self._bus is None:
            return
        log_event(
            bus=self._bus,
            module="modules.registry",
            event_type=EventType.MODULE_LIFECYCLE,
            message=f"{module.name}.{hook}",
            payload={"module": module.name, "hook": hook},
        )
