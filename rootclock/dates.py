"""
Dates of tips and internal nodes of a tree whose root date is known and
whose branch lengths are measured in the same units as the dates, i.e.
root date plus the sum of branch lengths along the path from the root.
"""
import numpy as np
from rootclock import UndefinedRootPathError
from .tree_utils import prepare_tree, branch_length


def root_time(tree):
    """date of the root, stored as tree.root_time, 0 if not set"""
    rt = getattr(tree, 'root_time', None)
    return 0.0 if rt is None else float(rt)


def leaf_dates(tree):
    """
    Compute dates of the tips by walking from each tip to the root.

    Parameters
    ----------
    tree : Bio.Phylo.BaseTree.Tree
        tree with branch lengths, optionally with attribute root_time

    Returns
    -------
    numpy.ndarray
        dates of tips in the order of ``tree.get_terminals()``
    """
    nodes = prepare_tree(tree)
    n_tips = tree.count_terminals()
    dates = np.repeat(root_time(tree), n_tips)
    for i, tip in enumerate(nodes[:n_tips]):
        w = tip
        steps = 0
        while w.up is not None:
            dates[i] += branch_length(w)
            w = w.up
            steps += 1
            if steps>len(nodes):
                raise UndefinedRootPathError("leaf_dates: path from tip %s does not terminate"%tip.name)
        if w is not tree.root:
            raise UndefinedRootPathError("leaf_dates: tip %s does not connect to the root"%tip.name)
    return dates


def all_dates(tree):
    """
    Compute dates of all tips and internal nodes.

    Returns
    -------
    numpy.ndarray
        dates of tips followed by internal nodes in preorder, i.e. the root
        is at position ``tree.count_terminals()``
    """
    nodes = prepare_tree(tree)
    return root_time(tree) + np.array([n.dist2root for n in nodes])


def node_dates(tree):
    """
    Compute dates of the internal nodes other than the root.

    Returns
    -------
    numpy.ndarray
        dates of internal nodes in preorder, without the root
    """
    nodes = prepare_tree(tree)
    return root_time(tree) + np.array([n.dist2root for n in nodes[tree.count_terminals()+1:]])
