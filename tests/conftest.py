# tests/conftest.py
"""
Shared Cppcheck dump doubles and AST builders.

The mocks carry exactly the attributes ``cppcheckdata`` objects expose and
that the engine reads.  Builders wire ``astOperand1``/``astOperand2``/
``astParent`` the way Cppcheck does: a call ``f(a, b)`` is a ``(`` token
over the callee name and a ``,`` tree, ``p->m`` is a ``.`` token.
"""

import itertools

import pytest

from cppcheckdata_unitags.engine import UnitagsEngine
from cppcheckdata_unitags.fact_store import FactRepository

_ids = itertools.count(1)
_expr_ids = {}


class MockValueType:
    def __init__(self, type="int", pointer=0, sign="signed", typeScope=None,
                 typeSize=None, originalTypeName=None):
        self.type = type
        self.pointer = pointer
        self.sign = sign
        self.typeScope = typeScope
        self.typeSize = typeSize
        self.originalTypeName = originalTypeName


class MockValue:
    def __init__(self, intvalue=None, valueKind="known"):
        self.intvalue = intvalue
        self.valueKind = valueKind


class MockScope:
    def __init__(self, className="", type="Struct", varlist=None, function=None,
                 nestedIn=None, bodyStart=None, bodyEnd=None):
        self.Id = next(_ids)
        self.className = className
        self.type = type
        self.varlist = list(varlist or [])
        self.function = function
        self.nestedIn = nestedIn
        self.bodyStart = bodyStart
        self.bodyEnd = bodyEnd


class MockVariable:
    def __init__(self, nameToken=None, isArgument=False, isPointer=False,
                 isArray=False, scope=None):
        self.Id = next(_ids)
        self.nameToken = nameToken
        self.isArgument = isArgument
        self.isPointer = isPointer
        self.isArray = isArray
        self.scope = scope


class MockFunction:
    def __init__(self, name, argument=None, isStatic=False):
        self.Id = next(_ids)
        self.name = name
        self.argument = dict(argument or {})
        self.isStatic = isStatic


class MockToken:
    def __init__(self, str="", **kwargs):
        self.Id = next(_ids)
        self.str = str
        self.astOperand1 = None
        self.astOperand2 = None
        self.astParent = None
        self.varId = 0
        self.exprId = 0
        self.variable = None
        self.function = None
        self.valueType = None
        self.values = None
        self.macroName = ""
        self.isName = False
        self.isNumber = False
        self.isCast = False
        self.isAssignmentOp = False
        self.isString = False
        self.isOp = False
        self.file = "test.c"
        self.linenr = 1
        self.column = 1
        self.next = None
        self.scope = None
        for key, value in kwargs.items():
            setattr(self, key, value)

    def __repr__(self):
        return f"MockToken({self.str!r})"


class MockConfiguration:
    def __init__(self, scopes=()):
        self.scopes = list(scopes)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

def num(text, macro="", line=1):
    return MockToken(text, isNumber=True, macroName=macro, linenr=line)


def name(text, macro=""):
    """A bare identifier that is not a tracked variable (macros, globals)."""
    return MockToken(text, isName=True, macroName=macro)


def var(text, var_id, variable=None, value_type=None, values=None, line=1):
    return MockToken(text, isName=True, varId=var_id, exprId=var_id,
                     variable=variable, valueType=value_type, values=values,
                     linenr=line)


def _link(parent, op1, op2=None):
    parent.astOperand1 = op1
    parent.astOperand2 = op2
    if op1 is not None:
        op1.astParent = parent
    if op2 is not None:
        op2.astParent = parent
    return parent


def _expr_id(*key):
    if key not in _expr_ids:
        _expr_ids[key] = 10_000 + len(_expr_ids)
    return _expr_ids[key]


def binop(op, left, right, line=1):
    tok = MockToken(op, isOp=True, linenr=line,
                    exprId=_expr_id(op, left.Id, right.Id))
    return _link(tok, left, right)


def assign(left, right, op="=", line=1):
    tok = MockToken(op, isOp=True, isAssignmentOp=True, linenr=line)
    return _link(tok, left, right)


def call(fname, *args, function=None, line=1):
    callee = MockToken(fname, isName=True, function=function, linenr=line)
    arg_tree = None
    for arg in args:
        arg_tree = arg if arg_tree is None else _link(MockToken(","), arg_tree, arg)
    tok = MockToken("(", linenr=line, exprId=next(_ids) + 50_000)
    return _link(tok, callee, arg_tree)


def sizeof(arg):
    return _link(MockToken("("), MockToken("sizeof", isName=True), arg)


def cast(inner, type_name="unsigned long"):
    tok = MockToken("(", isCast=True,
                    valueType=MockValueType(originalTypeName=type_name))
    return _link(tok, inner)


def member(base, field):
    """``base->field``; the same base variable and field share an exprId."""
    tok = MockToken(".", isOp=True, exprId=_expr_id(".", base.varId, field))
    return _link(tok, base, MockToken(field, isName=True))


def struct_scope(class_name, fields, kind="Struct"):
    """Record scope whose members are ``(name, type)`` pairs."""
    members = [
        MockVariable(nameToken=MockToken(fname, isName=True,
                                         valueType=MockValueType(type=ftype)))
        for fname, ftype in fields
    ]
    return MockScope(className=class_name, type=kind, varlist=members)


def record_var(text, var_id, scope, pointer=1):
    return var(text, var_id, variable=MockVariable(isPointer=bool(pointer)),
               value_type=MockValueType(type="record", pointer=pointer,
                                        typeScope=scope))


def make_function(fname, params, is_static=False):
    """A function and a token factory for its parameters.

    ``params`` is a list of ``(name, varId)``; the returned ``param(name)``
    builds a fresh token referring to that parameter.
    """
    function = MockFunction(fname, isStatic=is_static)
    body = MockScope(type="Function", function=function)
    variables = {}
    for nr, (pname, vid) in enumerate(params, start=1):
        variable = MockVariable(isArgument=True, scope=body)
        variable.nameToken = MockToken(pname, isName=True, varId=vid, variable=variable)
        function.argument[nr] = variable
        variables[pname] = (variable, vid)

    def param(pname):
        variable, vid = variables[pname]
        return var(pname, vid, variable=variable)

    return function, param


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def repo():
    repository = FactRepository.open()
    yield repository
    repository.close()


@pytest.fixture
def engine(repo):
    return UnitagsEngine(repository=repo)


@pytest.fixture
def run(engine):
    """Start analyzing a function; returns the dispatcher."""
    def _start(function=None, file_id=1):
        if function is None:
            function = MockFunction("test_fn")
        engine.dispatcher.start_function(engine.host.function_context(function, file_id))
        return engine.dispatcher
    return _start
