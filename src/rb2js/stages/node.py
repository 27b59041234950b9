"""Node.js runtime mapping: File, system, __dir__, exit, ARGV and friends."""

from __future__ import annotations

from ..stage import Next, Stage, handles
from ..tree import Child, Node, Symbol, s

IMPORT_FS = s("import", "fs", s("attr", None, Symbol("fs")))
IMPORT_CHILD_PROCESS = s("import", "child_process", s("attr", None, Symbol("child_process")))

_PROCESS = s("attr", None, Symbol("process"))
SETUP_ARGV = s("lvasgn", Symbol("ARGV"),
               s("send", s("attr", _PROCESS, Symbol("argv")), Symbol("slice"), s("int", 2)))

_STDIO_INHERIT = s("hash", s("pair", s("sym", Symbol("stdio")), s("str", "inherit")))

# File.<method> -> fs.<function>, keyed by argument count
FS_CALLS = {
    ("read", 1): "readFileSync",
    ("write", 2): "writeFileSync",
    ("exist?", 1): "existsSync",
    ("exists?", 1): "existsSync",
    ("delete", 1): "unlinkSync",
    ("rename", 2): "renameSync",
    ("readlink", 1): "readlinkSync",
    ("realpath", 1): "realpathSync",
}

PROCESS_CONSTS = {
    "ENV": "env",
    "STDIN": "stdin",
    "STDOUT": "stdout",
    "STDERR": "stderr",
}


def _fs(function: str, *args: Child) -> Node:
    return s("send", s("attr", None, Symbol("fs")), Symbol(function), *args)


class NodeStage(Stage):
    name = "node"

    @handles("send")
    def on_send(self, node: Node, next_: Next) -> Child:
        if node.kind != "send" or len(node.children) < 2:
            return next_(node)

        target, method, *args = node.children

        if target is None:
            if method == "__dir__" and not args:
                return self.carry(node, s("attr", None, Symbol("__dirname")))

            if method == "exit" and len(args) <= 1:
                return self.carry(node, s("send", _PROCESS, Symbol("exit"), *self.process_all(args)))

            if method == "system" and args:
                self.hoist(IMPORT_CHILD_PROCESS)
                binding = s("attr", None, Symbol("child_process"))

                if len(args) == 1:
                    call = s("send", binding, Symbol("execSync"), self.process(args[0]), _STDIO_INHERIT)
                else:
                    call = s("send", binding, Symbol("execFileSync"), self.process(args[0]),
                             s("array", *self.process_all(args[1:])), _STDIO_INHERIT)
                return self.carry(node, call)

            return next_(node)

        if isinstance(target, Node) and target.kind == "const" and target.children == (None, "File"):
            function = FS_CALLS.get((str(method), len(args)))
            if function is not None:
                self.hoist(IMPORT_FS)
                extra = (s("str", "utf8"),) if function == "readFileSync" else ()
                return self.carry(node, _fs(function, *self.process_all(args), *extra))

        return next_(node)

    @handles("const")
    def on_const(self, node: Node, next_: Next) -> Child:
        if len(node.children) != 2 or node.children[0] is not None:
            return next_(node)

        name = node.children[1]

        if name == "ARGV":
            self.hoist(SETUP_ARGV)
            return next_(node)

        if name in PROCESS_CONSTS:
            return self.carry(node, s("attr", _PROCESS, Symbol(PROCESS_CONSTS[name])))

        return next_(node)
