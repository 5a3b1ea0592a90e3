# -*- coding: utf-8 -*-
"""
File tree handling for directory uploads.

This module describes the tree to upload (folders and files), builds it from
a JSON description or directly from a local directory, and infers the content
type sent with each file.

The JSON description uses the ``directory-tree`` layout: a node with a
``children`` list is a folder, any other node is a file with a ``path`` and an
``extension``.
"""

import json
import os
from dataclasses import dataclass, field
from typing import List, Union

IMAGE_EXTENSIONS = ('.jpg', '.jpeg', '.gif', '.png', '.tiff')


@dataclass(frozen=True)
class FileNode:
    """A local file to upload"""
    name: str
    path: str
    extension: str = ''

    has_children = False


@dataclass(frozen=True)
class FolderNode:
    """A folder; children are created only once the folder exists remotely"""
    name: str
    children: tuple = field(default_factory=tuple)

    has_children = True


TreeNode = Union[FileNode, FolderNode]


def guess_content_type(extension):
    """
    Content type sent with an uploaded file.

    Args:
        extension (str): File extension including the dot (e.g., ".png")

    Returns:
        str: ``image/<ext>`` for jpg/jpeg/gif/png/tiff, ``application/pdf``
            for pdf, an empty string for anything else
    """
    extension = (extension or '').lower()
    if extension in IMAGE_EXTENSIONS:
        return f"image/{extension[1:]}"
    if extension == '.pdf':
        return 'application/pdf'
    return ''


def node_from_dict(data):
    """
    Build a tree node from a ``directory-tree`` style dictionary.

    Args:
        data (dict): ``{"name", "children": [...]}`` for a folder,
            ``{"name", "path", "extension"}`` for a file

    Returns:
        FileNode or FolderNode

    Raises:
        ValueError: If a file node has no path
    """
    if not isinstance(data, dict) or 'name' not in data:
        raise ValueError(f"Invalid tree node: {data!r}")

    if data.get('children') is not None:
        return FolderNode(
            name=data['name'],
            children=tuple(node_from_dict(child) for child in data['children'])
        )

    if not data.get('path'):
        raise ValueError(f"File node '{data['name']}' has no path")
    extension = data.get('extension')
    if extension is None:
        extension = os.path.splitext(data['name'])[1]
    return FileNode(name=data['name'], path=data['path'], extension=extension)


def load_tree_description(json_path):
    """Read a JSON tree description from disk and return its root FolderNode"""
    with open(json_path, 'r', encoding='utf-8') as f:
        root = node_from_dict(json.load(f))
    if not root.has_children:
        raise ValueError(f"Tree description {json_path} does not describe a folder")
    return root


def build_directory_tree(local_path):
    """
    Walk a local directory and describe it as a tree.

    Symbolic links are skipped. Entries are sorted by name so the description
    is stable between runs.

    Args:
        local_path (str): Directory to describe

    Returns:
        FolderNode: Root of the tree, named after the directory

    Raises:
        NotADirectoryError: If local_path is not a directory
    """
    local_path = os.path.abspath(local_path)
    if not os.path.isdir(local_path):
        raise NotADirectoryError(local_path)

    children: List[TreeNode] = []
    for entry in sorted(os.scandir(local_path), key=lambda e: e.name):
        if entry.is_symlink():
            continue
        if entry.is_dir():
            children.append(build_directory_tree(entry.path))
        elif entry.is_file():
            children.append(FileNode(
                name=entry.name,
                path=entry.path,
                extension=os.path.splitext(entry.name)[1]
            ))
    return FolderNode(name=os.path.basename(local_path), children=tuple(children))


def count_nodes(root):
    """
    Count the folders and files below a root folder (the root itself excluded).

    Returns:
        tuple: (folder_count, file_count)
    """
    folders = files = 0
    for child in root.children:
        if child.has_children:
            sub_folders, sub_files = count_nodes(child)
            folders += 1 + sub_folders
            files += sub_files
        else:
            files += 1
    return folders, files
