"""Tests for the extension registry."""

from __future__ import annotations

import logging
import os
import threading
import time
from unittest.mock import Mock
from unittest.mock import patch

import pyarrow as pa
import pytest

from arrowext.constants import EXTENSION_METADATA_KEY
from arrowext.constants import EXTENSION_NAME_KEY
from arrowext.constants import BaseLayout
from arrowext.exceptions import MetadataParseError
from arrowext.extension import ArrayHandle
from arrowext.json_array import JsonArray
from arrowext.registry import ExtensionRegistry
from arrowext.registry import decode_array
from arrowext.registry import decode_record_batch
from arrowext.registry import get_extension_registry
from arrowext.registry import is_extension_registered
from arrowext.registry import list_extensions
from arrowext.registry import register_default_extensions
from arrowext.registry import register_extension
from arrowext.registry import reset_extension_registry
from arrowext.schemas.tensor_metadata import TensorMetadata
from arrowext.variable_shape_tensor import VariableShapeTensorArray
from tests.unit.helpers import make_data_child
from tests.unit.helpers import make_shape_child


class WrappedExtensionType(pa.ExtensionType):
    """Extension type used to hand the registry arrays pyarrow already wrapped."""

    def __init__(self, storage_type: pa.DataType, extension_name: str, serialized: bytes = b""):
        self._serialized = serialized
        super().__init__(storage_type, extension_name)

    def __arrow_ext_serialize__(self) -> bytes:
        return self._serialized

    @classmethod
    def __arrow_ext_deserialize__(cls, storage_type: pa.DataType, serialized: bytes) -> WrappedExtensionType:
        return cls(storage_type, "test.wrapped", serialized)


def tagged_field(name: str, data_type: pa.DataType, extension_name: str, extension_metadata: str = "") -> pa.Field:
    """Field carrying an extension tag in its metadata."""
    metadata = {EXTENSION_NAME_KEY: extension_name}
    if extension_metadata:
        metadata[EXTENSION_METADATA_KEY] = extension_metadata
    return pa.field(name, data_type, metadata=metadata)


class TestExtensionRegistry:
    """Registration and lookup on a registry instance."""

    def test_defaults(self, registry: ExtensionRegistry) -> None:
        """The built-in extensions cover three JSON layouts and one tensor layout."""
        assert sorted(registry.list_all_extensions()) == [
            (BaseLayout.LARGE_STRING, "arrow.json"),
            (BaseLayout.STRING, "arrow.json"),
            (BaseLayout.STRING_VIEW, "arrow.json"),
            (BaseLayout.STRUCT, "arrow.variable_shape_tensor"),
        ]

    def test_register_and_get(self) -> None:
        """A registered factory is returned for its key."""
        registry = ExtensionRegistry()
        factory = Mock()

        key = registry.register(BaseLayout.BINARY, "test.blob", factory)

        assert key == (BaseLayout.BINARY, "test.blob")
        assert registry.is_registered(BaseLayout.BINARY, "test.blob")
        assert registry.get(BaseLayout.BINARY, "test.blob") is factory

    def test_layout_given_as_text(self) -> None:
        """Layouts may be given by value."""
        registry = ExtensionRegistry()
        registry.register("binary", "test.blob", Mock())

        assert registry.is_registered(BaseLayout.BINARY, "test.blob")

    def test_register_duplicate(self, registry: ExtensionRegistry) -> None:
        """Registering the same key twice fails."""
        with pytest.raises(ValueError, match="Extension 'arrow.json' is already registered for layout 'string'"):
            registry.register(BaseLayout.STRING, "arrow.json", Mock())

    def test_same_name_other_layout(self, registry: ExtensionRegistry) -> None:
        """A name can be registered again under another layout."""
        registry.register(BaseLayout.BINARY, "arrow.json", Mock())

        assert registry.is_registered(BaseLayout.BINARY, "arrow.json")
        assert registry.is_registered(BaseLayout.STRING, "arrow.json")

    def test_get_missing(self, registry: ExtensionRegistry) -> None:
        """Looking up an unknown key fails."""
        with pytest.raises(KeyError, match="Extension 'arrow.json' is not registered for layout 'binary'"):
            registry.get(BaseLayout.BINARY, "arrow.json")

    def test_unregister(self, registry: ExtensionRegistry) -> None:
        """Unregistered keys can't be found anymore."""
        registry.unregister(BaseLayout.STRING_VIEW, "arrow.json")

        assert not registry.is_registered(BaseLayout.STRING_VIEW, "arrow.json")
        assert registry.is_registered(BaseLayout.STRING, "arrow.json")
        with pytest.raises(KeyError):
            registry.unregister(BaseLayout.STRING_VIEW, "arrow.json")

    def test_clear(self, registry: ExtensionRegistry) -> None:
        """Clearing removes every factory."""
        registry.clear()

        assert registry.list_all_extensions() == []

    def test_repr(self, registry: ExtensionRegistry) -> None:
        """The repr lists every key."""
        text = repr(registry)

        assert text.startswith("ExtensionRegistry(extensions=")
        assert "arrow.json[string_view]" in text
        assert "arrow.variable_shape_tensor[struct]" in text

    def test_repr_html(self, registry: ExtensionRegistry) -> None:
        """The HTML repr has one row per key."""
        html = registry._repr_html_()

        assert "ExtensionRegistry" in html
        assert "(4)" in html
        assert html.count("<tr>") == 5

    def test_concurrent_registration(self) -> None:
        """Registering from several threads keeps every key."""
        registry = ExtensionRegistry()
        errors = []

        def register(index: int) -> None:
            try:
                registry.register(BaseLayout.BINARY, f"test.ext{index}", Mock())
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=register, args=(i,)) for i in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(registry.list_all_extensions()) == 20


class TestDecode:
    """Turning tagged arrays into typed views."""

    def test_untagged(self, registry: ExtensionRegistry) -> None:
        """Untagged arrays come back unchanged."""
        array = pa.array([1, 2, 3])

        assert registry.decode(array) is array

    def test_json(self, registry: ExtensionRegistry) -> None:
        """Tagged text arrays become JSON arrays."""
        field = tagged_field("payload", pa.large_string(), "arrow.json")
        documents = registry.decode(pa.array(['{"a":1}'], pa.large_string()), field)

        assert isinstance(documents, JsonArray)
        assert documents.base_layout == BaseLayout.LARGE_STRING
        assert documents.name == "payload"
        assert documents.value(0) == {"a": 1}

    def test_tensor(self, registry: ExtensionRegistry) -> None:
        """Tagged struct arrays become tensor arrays with their metadata."""
        original = VariableShapeTensorArray(
            2,
            make_data_child([1, 2, 3, 4, 5, 6], [0, 6]),
            make_shape_child([2, 3], 2),
            TensorMetadata(dim_names=["H", "W"]),
            name="images",
            annotations={"origin": "camera"},
        )

        decoded = registry.decode(original.storage, original.field)

        assert isinstance(decoded, VariableShapeTensorArray)
        assert decoded.metadata == original.metadata
        assert decoded.name == "images"
        assert decoded.annotations == {"origin": "camera"}
        assert decoded.to_pylist() == original.to_pylist()

    def test_handle_round_trip(self, registry: ExtensionRegistry, three_vectors: VariableShapeTensorArray) -> None:
        """A view's own handle decodes to an equivalent view."""
        handle = three_vectors.to_handle()
        decoded = registry.decode(handle.array, handle.field)

        assert isinstance(decoded, VariableShapeTensorArray)
        assert decoded.ndim is None
        assert decoded.size() == 3

    def test_tensor_without_metadata_key(
        self, registry: ExtensionRegistry, three_vectors: VariableShapeTensorArray
    ) -> None:
        """A missing metadata key reads as empty metadata."""
        field = tagged_field("t", three_vectors.storage.type, "arrow.variable_shape_tensor")
        decoded = registry.decode(three_vectors.storage, field)

        assert decoded.metadata == TensorMetadata()

    def test_malformed_tensor_metadata(
        self, registry: ExtensionRegistry, three_vectors: VariableShapeTensorArray
    ) -> None:
        """Malformed serialized metadata is an error, not a fallback."""
        field = tagged_field("t", three_vectors.storage.type, "arrow.variable_shape_tensor", '{"dim_names":')

        with pytest.raises(MetadataParseError):
            registry.decode(three_vectors.storage, field)

    def test_invalid_tensor_metadata_warns(
        self, registry: ExtensionRegistry, three_vectors: VariableShapeTensorArray, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Well-formed but invalid metadata is decoded with a warning."""
        field = tagged_field("t", three_vectors.storage.type, "arrow.variable_shape_tensor", '{"uniform_shape":[0]}')

        with caplog.at_level(logging.WARNING, logger="arrowext.variable_shape_tensor"):
            decoded = registry.decode(three_vectors.storage, field)

        assert not decoded.metadata.is_valid()
        assert "invalid metadata" in caplog.text

    def test_invalid_tensor_metadata_warning_disabled(
        self, registry: ExtensionRegistry, three_vectors: VariableShapeTensorArray, caplog: pytest.LogCaptureFixture
    ) -> None:
        """The warning can be turned off through the environment."""
        field = tagged_field("t", three_vectors.storage.type, "arrow.variable_shape_tensor", '{"uniform_shape":[0]}')

        with (
            patch.dict(os.environ, {"ARROWEXT__WARN_INVALID_METADATA": "false"}),
            caplog.at_level(logging.WARNING, logger="arrowext.variable_shape_tensor"),
        ):
            registry.decode(three_vectors.storage, field)

        assert "invalid metadata" not in caplog.text

    def test_unknown_extension(self, registry: ExtensionRegistry, caplog: pytest.LogCaptureFixture) -> None:
        """Tags without a factory fall back to the storage."""
        array = pa.array([b"\x00\x01"])
        field = tagged_field("blob", pa.binary(), "com.example.blob")

        with caplog.at_level(logging.INFO, logger="arrowext.registry"):
            decoded = registry.decode(array, field)

        assert decoded is array
        assert "com.example.blob" in caplog.text

    def test_known_name_wrong_layout(self, registry: ExtensionRegistry) -> None:
        """Dispatch uses the layout too, a JSON tag on integers isn't decoded."""
        array = pa.array([1, 2])
        decoded = registry.decode(array, tagged_field("n", pa.int64(), "arrow.json"))

        assert decoded is array

    def test_custom_factory(self) -> None:
        """Factories receive the handle of the tagged array."""
        registry = ExtensionRegistry()
        factory = Mock(return_value="decoded")
        registry.register(BaseLayout.PRIMITIVE, "test.counter", factory)

        array = pa.array([1, 2])
        result = registry.decode(array, tagged_field("n", pa.int64(), "test.counter"))

        assert result == "decoded"
        handle = factory.call_args.args[0]
        assert isinstance(handle, ArrayHandle)
        assert handle.array is array
        assert handle.name == "n"

    def test_chunked_array(self, registry: ExtensionRegistry) -> None:
        """Chunked arrays are combined before decoding."""
        chunked = pa.chunked_array([pa.array(["1"]), pa.array(["2"])])
        documents = registry.decode(chunked, tagged_field("n", pa.string(), "arrow.json"))

        assert documents.size() == 2
        assert documents.value(1) == 2

    def test_pyarrow_extension_array(self, registry: ExtensionRegistry) -> None:
        """Arrays already wrapped by pyarrow are decoded through their type."""
        wrapped_type = WrappedExtensionType(pa.string_view(), "arrow.json")
        storage = pa.array(['{"b":2}'], pa.string_view())
        wrapped = pa.ExtensionArray.from_storage(wrapped_type, storage)

        documents = registry.decode(wrapped)

        assert isinstance(documents, JsonArray)
        assert documents.base_layout == BaseLayout.STRING_VIEW
        assert documents.value(0) == {"b": 2}

    def test_pyarrow_extension_array_metadata(
        self, registry: ExtensionRegistry, three_vectors: VariableShapeTensorArray
    ) -> None:
        """Serialized metadata of a wrapped type is used when the field carries none."""
        wrapped_type = WrappedExtensionType(
            three_vectors.storage.type, "arrow.variable_shape_tensor", b'{"dim_names":["x"]}'
        )
        wrapped = pa.ExtensionArray.from_storage(wrapped_type, three_vectors.storage)

        decoded = registry.decode(wrapped)

        assert isinstance(decoded, VariableShapeTensorArray)
        assert decoded.metadata.dim_names == ("x",)


class TestDecodeRecordBatch:
    """Decoding every column of a batch."""

    def test_mixed_columns(self, registry: ExtensionRegistry, three_vectors: VariableShapeTensorArray) -> None:
        """Tagged columns become views, the others stay raw."""
        documents = JsonArray.from_values([{"k": 1}, None, [3]], name="docs")
        plain = pa.array([1.5, 2.5, 3.5])
        schema = pa.schema([documents.field, pa.field("plain", pa.float64()), three_vectors.field.with_name("t")])
        batch = pa.record_batch([documents.storage, plain, three_vectors.storage], schema=schema)

        columns = decode_record_batch(batch, registry)

        assert list(columns) == ["docs", "plain", "t"]
        assert isinstance(columns["docs"], JsonArray)
        assert columns["docs"].value(2) == [3]
        assert columns["plain"].to_pylist() == [1.5, 2.5, 3.5]
        assert isinstance(columns["t"], VariableShapeTensorArray)
        assert columns["t"].name == "t"

    def test_table(self) -> None:
        """Tables are decoded with the global registry by default."""
        documents = JsonArray.from_values(["a", "b"], name="docs")
        table = pa.Table.from_arrays([documents.storage], schema=pa.schema([documents.field]))

        columns = decode_record_batch(table)

        assert isinstance(columns["docs"], JsonArray)
        assert list(columns["docs"]) == ['"a"', '"b"']


class TestGlobalRegistry:
    """The process-wide registry and its helpers."""

    def test_same_instance(self) -> None:
        """Repeated calls return the same registry."""
        assert get_extension_registry() is get_extension_registry()

    def test_populated_on_first_use(self) -> None:
        """The built-in extensions are registered by default."""
        assert is_extension_registered(BaseLayout.STRUCT, "arrow.variable_shape_tensor")
        assert len(list_extensions()) == 4

    def test_register_defaults_disabled(self) -> None:
        """The environment can keep the global registry empty."""
        with patch.dict(os.environ, {"ARROWEXT__REGISTER_DEFAULTS": "false"}):
            assert list_extensions() == []

    def test_register_defaults_explicitly(self) -> None:
        """An empty global registry can be populated later."""
        with patch.dict(os.environ, {"ARROWEXT__REGISTER_DEFAULTS": "0"}):
            registry = get_extension_registry()
        register_default_extensions(registry)

        assert len(list_extensions()) == 4

    def test_reset(self) -> None:
        """Resetting drops registrations made on the previous instance."""
        register_extension(BaseLayout.BINARY, "test.blob", Mock())
        assert is_extension_registered(BaseLayout.BINARY, "test.blob")

        reset_extension_registry()

        assert not is_extension_registered(BaseLayout.BINARY, "test.blob")

    def test_decode_array(self) -> None:
        """The module-level decode uses the global registry."""
        documents = decode_array(pa.array(["null"]), tagged_field("d", pa.string(), "arrow.json"))

        assert isinstance(documents, JsonArray)
        assert documents.value(0) is None

    def test_thread_safety(self) -> None:
        """Concurrent first calls create a single registry."""
        instances = []
        errors = []

        def get_instance() -> None:
            try:
                instances.append(get_extension_registry())
                time.sleep(0.001)
            except Exception as e:  # noqa: BLE001
                errors.append(e)

        threads = [threading.Thread(target=get_instance) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(instances) == 10
        assert all(instance is instances[0] for instance in instances)
        assert len(instances[0].list_all_extensions()) == 4
