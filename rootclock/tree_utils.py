import copy
import numpy as np
from Bio.Phylo.BaseTree import Clade
from rootclock import RootClockError, UndefinedRootPathError, AnnotationConsistencyError


def branch_length(clade):
    """length of the branch leading to clade, 0 if not set"""
    return clade.branch_length if clade.branch_length else 0.0


def edge_key(a, b):
    """unordered pair of stable node indices identifying the branch between a and b"""
    return (a._idx, b._idx) if a._idx<b._idx else (b._idx, a._idx)


def prepare_tree(tree, name_internal=False):
    """
    Set link to parent, node index, subtree index ranges and the distance to
    root for all tree nodes. Should be run once the tree is read and after
    every rerooting, topology change or branch length change.

    Tips are numbered 0..N-1 in the order of ``tree.get_terminals()``,
    internal nodes N..N+M-1 in preorder, such that the root has index N.
    Since both orders are preorders, the tips and internal nodes below a
    node occupy contiguous index ranges, stored as slices ``_tips`` and
    ``_inner``.

    Parameters
    ----------
    tree : Bio.Phylo.BaseTree.Tree
        tree to prepare

    name_internal : bool
        give unnamed internal nodes unique names NODE_0000000, NODE_0000001, ...

    Returns
    -------
    list
        all clades in index order
    """
    # a clade that can be reached twice has no unique path to the root
    seen = set()
    stack = [tree.root]
    while stack:
        clade = stack.pop()
        if id(clade) in seen:
            raise UndefinedRootPathError("prepare_tree: node %s is reached along more than one path from the root"
                                         %(clade.name,))
        seen.add(id(clade))
        stack.extend(clade.clades)

    tips = tree.get_terminals()
    internal = tree.get_nonterminals(order='preorder') # parents first

    if name_internal:
        name_set = {n.name for n in tree.find_clades() if n.name}
        internal_node_count = 0
        for clade in internal:
            if clade.name is None:
                tmp = "NODE_" + format(internal_node_count, '07d')
                while tmp in name_set:
                    internal_node_count += 1
                    tmp = "NODE_" + format(internal_node_count, '07d')
                clade.name = tmp
                name_set.add(clade.name)
            internal_node_count+=1

    nodes = tips + internal
    for ci, clade in enumerate(nodes):
        clade._idx = ci

    tree.root.up = None
    tree.root.dist2root = 0.0
    for clade in internal:
        for c in clade.clades:
            c.up = clade
            c.dist2root = clade.dist2root + branch_length(c)

    for clade in tips:
        clade._tips = slice(clade._idx, clade._idx+1)
        clade._inner = slice(0, 0)
    for clade in reversed(internal): # children first
        n_inner = 1 + sum(c._inner.stop - c._inner.start for c in clade)
        clade._tips = slice(clade.clades[0]._tips.start, clade.clades[-1]._tips.stop)
        clade._inner = slice(clade._idx, clade._idx + n_inner)

    return nodes


def node_list(tree):
    """clades of a prepared tree in index order, tips first"""
    return tree.get_terminals() + tree.get_nonterminals(order='preorder')


def is_rooted(tree):
    """a tree counts as rooted if its root is bifurcating"""
    return len(tree.root.clades)==2


def tree_length(tree):
    """total branch length of the tree, excluding a branch above the root"""
    return sum(branch_length(c) for c in tree.find_clades() if c is not tree.root)


def mean_branch_length(tree):
    """mean branch length over all branches below the root"""
    bl = [branch_length(c) for c in tree.find_clades() if c is not tree.root]
    return np.mean(bl) if len(bl) else 0.0


def pairwise_node_distances(tree, tips_only=False):
    """
    Path distances between all nodes of the tree.

    The matrix is filled in a single preorder pass: moving from a node to
    its child adds the branch length to the distance of every node, except
    for the nodes below the child which get closer by the same amount.

    Parameters
    ----------
    tree : Bio.Phylo.BaseTree.Tree
        tree, will be prepared

    tips_only : bool
        if True, only distances to tips are calculated (columns 0..N-1)

    Returns
    -------
    numpy.ndarray
        matrix with rows for all nodes and columns for all nodes (or tips) in
        the index order of :py:func:`prepare_tree`
    """
    nodes = prepare_tree(tree)
    n_tips = tree.count_terminals()
    ncol = n_tips if tips_only else len(nodes)
    D = np.zeros((len(nodes), ncol), dtype=float)
    D[tree.root._idx] = np.array([n.dist2root for n in nodes[:ncol]])
    for clade in tree.get_nonterminals(order='preorder'):
        row = D[clade._idx]
        for c in clade:
            bl = branch_length(c)
            D[c._idx] = row + bl
            D[c._idx, c._tips] -= 2*bl
            if not tips_only:
                D[c._idx, c._inner] -= 2*bl
    return D


def reroot(tree, node, split=0.5, annotation=None):
    """
    Root a copy of the tree on the branch above a node.

    The new root gets two children, the node itself at distance
    ``split*L`` and its former parent at distance ``(1-split)*L``, where L is
    the length of the branch above node. All other branches keep their
    length and are oriented away from the new root. A bifurcating old root
    remains in the tree as a node with a single child. Tips of the copy
    keep their position in the input as attribute ``input_index``, such
    that date sequences aligned with the input tree still apply.

    Parameters
    ----------
    tree : Bio.Phylo.BaseTree.Tree
        tree to reroot, it is not modified

    node : Bio.Phylo.BaseTree.Clade
        clade of tree, must not be the root

    split : float
        fraction of the branch between the new root and node

    annotation : str, optional
        name of a clade attribute that describes the branch above the clade
        (e.g. 'unrec'). If given, the values are moved along with their
        branches, both branches of the new root get the value of the branch
        that was split. If None, no such attribute is touched.

    Returns
    -------
    Bio.Phylo.BaseTree.Tree
        the rerooted copy
    """
    nodes = prepare_tree(tree)
    if getattr(node, '_idx', None) is None or nodes[node._idx] is not node:
        raise RootClockError("reroot: node %s is not part of the tree"%(node.name,))
    if node is tree.root:
        raise RootClockError("reroot: can't root on the branch above the root")

    new_tree = copy.deepcopy(tree)
    new_nodes = prepare_tree(new_tree)

    # record neighbours, lengths and annotations of the unrooted tree
    neighbours = {}
    lengths = {}
    annotations = {}
    for clade in new_nodes:
        neighbours[clade._idx] = ([clade.up] if clade.up is not None else []) + list(clade.clades)
        if clade.up is not None:
            key = edge_key(clade, clade.up)
            lengths[key] = branch_length(clade)
            if annotation is not None:
                annotations[key] = getattr(clade, annotation, None)

    w = new_nodes[node._idx]
    u = w.up
    split_key = edge_key(w, u)
    L = lengths[split_key]
    new_root = Clade(branch_length=new_tree.root.branch_length, clades=[w, u])
    w.branch_length = split*L
    u.branch_length = (1.0-split)*L

    stack = [(w, u), (u, w)]
    while stack:
        v, parent = stack.pop()
        v.clades = [x for x in neighbours[v._idx] if x is not parent]
        for x in v.clades:
            x.branch_length = lengths[edge_key(x, v)]
            stack.append((x, v))

    if annotation is not None:
        move_annotations(new_root, annotations, annotations[split_key], annotation)

    # tips remember their position in the input
    for tip in new_nodes[:tree.count_terminals()]:
        tip.input_index = getattr(tip, 'input_index', tip._idx)

    new_tree.root = new_root
    new_tree.rooted = True
    new_tree.root_time = None
    prepare_tree(new_tree)
    return new_tree


def move_annotations(root, annotations, split_value, annotation):
    """
    Assign the per branch attribute ``annotation`` to all clades below root.

    Parameters
    ----------
    root : Bio.Phylo.BaseTree.Clade
        new root, its two children share ``split_value``

    annotations : dict
        values of all other branches keyed by :py:func:`edge_key` of their
        end points

    split_value :
        annotation of the branch that carries the root

    annotation : str
        name of the clade attribute
    """
    for v in root.clades:
        setattr(v, annotation, split_value)
    stack = [(c, v) for v in root.clades for c in v.clades]
    while stack:
        v, parent = stack.pop()
        key = edge_key(v, parent)
        if key not in annotations:
            raise AnnotationConsistencyError("move_annotations: branch %s-%s has no counterpart in the original tree"
                                             %(parent.name, v.name))
        setattr(v, annotation, annotations[key])
        stack.extend((c, v) for c in v.clades)
