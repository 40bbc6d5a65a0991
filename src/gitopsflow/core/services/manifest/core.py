from copy import deepcopy
from typing import Any, Dict, List, Optional

import yaml

from .exceptions import ManifestPatchError


# Ключ слияния списков, как у containers в Kubernetes strategic merge patch
MERGE_KEY = "name"


def render_image_patch(container: str, image: str) -> Dict[str, Any]:
    """
    Патч деплоймента, меняющий образ одного контейнера.
    Тот же документ уходит в kubectl patch --local внутри GitOps-джоба.
    """
    return {
        "spec": {
            "template": {
                "spec": {
                    "containers": [
                        {"name": container, "image": image},
                    ]
                }
            }
        }
    }


def _is_keyed_list(items: List[Any]) -> bool:
    return bool(items) and all(
        isinstance(item, dict) and MERGE_KEY in item for item in items
    )


def strategic_merge(base: Any, patch: Any) -> Any:
    """
    Упрощённый strategic merge:
    - словари сливаются рекурсивно;
    - списки словарей с ключом name сливаются по name (новые - в конец);
    - всё остальное заменяется значением из patch.

    base не мутируется.
    """
    if isinstance(base, dict) and isinstance(patch, dict):
        merged = deepcopy(base)
        for key, value in patch.items():
            merged[key] = strategic_merge(base[key], value) if key in base else deepcopy(value)
        return merged

    if isinstance(base, list) and isinstance(patch, list) and _is_keyed_list(base) and _is_keyed_list(patch):
        merged_list = deepcopy(base)
        index = {item[MERGE_KEY]: pos for pos, item in enumerate(merged_list)}
        for item in patch:
            pos = index.get(item[MERGE_KEY])
            if pos is None:
                merged_list.append(deepcopy(item))
            else:
                merged_list[pos] = strategic_merge(merged_list[pos], item)
        return merged_list

    return deepcopy(patch)


def _containers(manifest: Dict[str, Any]) -> List[Dict[str, Any]]:
    try:
        containers = manifest["spec"]["template"]["spec"]["containers"]
    except (KeyError, TypeError):
        return []
    return containers if isinstance(containers, list) else []


def _scalar_value(node: Optional[yaml.Node]) -> Optional[str]:
    return node.value if isinstance(node, yaml.ScalarNode) else None


def _lookup(node: yaml.Node, key: str) -> Optional[yaml.Node]:
    if not isinstance(node, yaml.MappingNode):
        return None
    for key_node, value_node in node.value:
        if _scalar_value(key_node) == key:
            return value_node
    return None


def _container_nodes(document: yaml.Node) -> List[yaml.Node]:
    node = document
    for key in ("spec", "template", "spec", "containers"):
        node = _lookup(node, key)
        if node is None:
            return []
    if not isinstance(node, yaml.SequenceNode):
        return []
    return [item for item in node.value if isinstance(item, yaml.MappingNode)]


def render_scalar(value: str, style: Optional[str]) -> str:
    """
    Значение в том же стиле кавычек, что был в манифесте.
    Plain-скаляр, который YAML прочитал бы не как эту строку,
    пишется в двойных кавычках.
    """
    if style not in ('"', "'"):
        style = None
    text = yaml.safe_dump(value, default_style=style, allow_unicode=True, width=float("inf"))
    text = text.rstrip("\n")
    if text.endswith("\n..."):
        text = text[: -len("\n...")]
    if style is None and (text.startswith(("'", '"')) or "\n" in text):
        return render_scalar(value, '"')
    return text


def apply_image_patch(manifest_text: str, container: str, image: str) -> str:
    """
    Применяет render_image_patch к тексту манифеста и отдаёт новый YAML.

    Меняется только текст скаляра image нужного контейнера (по позиции
    узла в исходнике); комментарии, отступы, кавычки и всё остальное
    остаются байт в байт. Результат сверяется со strategic_merge.

    :raises ManifestPatchError: YAML не парсится или контейнера нет.
    """
    try:
        documents = list(yaml.compose_all(manifest_text, Loader=yaml.SafeLoader))
        data = list(yaml.safe_load_all(manifest_text))
    except yaml.YAMLError as e:
        raise ManifestPatchError(container=container, reason=f"invalid YAML: {e}")

    if not any(isinstance(d, yaml.MappingNode) for d in documents):
        raise ManifestPatchError(container=container, reason="manifest is not a mapping")

    names: List[Optional[str]] = []
    targets: List[yaml.Node] = []
    for document in documents:
        for node in _container_nodes(document):
            name = _scalar_value(_lookup(node, MERGE_KEY))
            names.append(name)
            if name == container:
                targets.append(node)

    if not targets:
        raise ManifestPatchError(
            container=container,
            reason=f"container not found (available: {names})",
        )

    patched = manifest_text
    # с конца, чтобы позиции ещё не заменённых узлов не сдвигались
    for node in reversed(targets):
        image_node = _lookup(node, "image")
        if not isinstance(image_node, yaml.ScalarNode):
            raise ManifestPatchError(container=container, reason="container has no scalar image field")
        start, end = image_node.start_mark.index, image_node.end_mark.index
        patched = patched[:start] + render_scalar(image, image_node.style) + patched[end:]

    expected = [
        strategic_merge(d, render_image_patch(container, image)) if d is not None and _has_container(d, container) else d
        for d in data
    ]
    if list(yaml.safe_load_all(patched)) != expected:
        raise ManifestPatchError(container=container, reason="patched manifest does not match the merge result")
    return patched


def _has_container(manifest: Any, container: str) -> bool:
    return any(isinstance(c, dict) and c.get(MERGE_KEY) == container for c in _containers(manifest))
