from io import StringIO
import numpy as np
import pytest
from Bio import Phylo


def rooted_tree():
    return Phylo.read(StringIO("((A:1,B:2)X:3,(C:4,D:5)Y:6)R;"), 'newick')


def tip_distances(tree):
    from rootclock.tree_utils import pairwise_node_distances, node_list
    D = pairwise_node_distances(tree)
    names = [n.name for n in node_list(tree)]
    tips = sorted(t.name for t in tree.get_terminals())
    return {(a,b):D[names.index(a), names.index(b)] for a in tips for b in tips}


def test_prepare_tree_indices():
    from rootclock.tree_utils import prepare_tree
    tree = rooted_tree()
    nodes = prepare_tree(tree)
    assert [n.name for n in nodes] == ['A', 'B', 'C', 'D', 'R', 'X', 'Y']
    assert tree.root._idx == 4
    assert tree.root.up is None
    X = nodes[5]
    assert X._tips == slice(0, 2)
    assert X._inner == slice(5, 6)
    assert tree.root._inner == slice(4, 7)
    assert all(c.up is X for c in X.clades)
    assert np.isclose(nodes[3].dist2root, 11)


def test_prepare_tree_names_internal_nodes():
    from rootclock.tree_utils import prepare_tree
    tree = Phylo.read(StringIO("((A:1,B:1):1,(C:1,D:1)NODE_0000000:1);"), 'newick')
    prepare_tree(tree, name_internal=True)
    names = [n.name for n in tree.get_nonterminals()]
    assert None not in names
    assert len(set(names)) == 3
    assert 'NODE_0000000' in names


def test_pairwise_node_distances():
    from rootclock.tree_utils import pairwise_node_distances
    tree = rooted_tree()
    D = pairwise_node_distances(tree)
    assert D.shape == (7, 7)
    assert np.allclose(D, D.T)
    assert np.allclose(np.diag(D), 0)
    # A-B, A-C, X-Y, A-Y
    assert np.isclose(D[0,1], 3)
    assert np.isclose(D[0,2], 14)
    assert np.isclose(D[5,6], 9)
    assert np.isclose(D[0,6], 10)
    assert np.allclose(D[4], [4, 5, 10, 11, 0, 3, 6])
    assert np.allclose(pairwise_node_distances(tree, tips_only=True), D[:,:4])


def test_reroot_structure():
    from rootclock.tree_utils import reroot
    tree = rooted_tree()
    C = [n for n in tree.get_terminals() if n.name=='C'][0]
    new_tree = reroot(tree, C, split=0.25)
    assert [c.name for c in new_tree.root.clades] == ['C', 'Y']
    C_new, Y_new = new_tree.root.clades
    assert np.isclose(C_new.branch_length, 1)
    assert np.isclose(Y_new.branch_length, 3)
    assert sorted(c.name for c in Y_new.clades) == ['D', 'R']
    R_new = [c for c in Y_new.clades if c.name=='R'][0]
    assert np.isclose(R_new.branch_length, 6)
    assert [c.name for c in R_new.clades] == ['X']
    assert new_tree.rooted
    # the input tree is untouched
    assert tree.root.name == 'R'
    assert [c.name for c in tree.root.clades] == ['X', 'Y']


def test_reroot_keeps_tip_distances():
    from rootclock.tree_utils import reroot
    for nwk in ["((A:1,B:2)X:3,(C:4,D:5)Y:6)R;",
                "(A:0.1,B:0.25,(C:0.3,(D:0.05,E:0.5):0.2):0.15);"]:
        tree = Phylo.read(StringIO(nwk), 'newick')
        before = tip_distances(tree)
        for node in [n for n in tree.find_clades() if n is not tree.root]:
            for split in [0.0, 0.3, 1.0]:
                after = tip_distances(reroot(tree, node, split=split))
                assert before.keys() == after.keys()
                assert all(np.isclose(before[k], after[k]) for k in before)


def test_reroot_at_current_root_position():
    from rootclock.tree_utils import reroot
    from rootclock import leaf_dates
    tree = rooted_tree()
    X = tree.root.clades[0]
    # root on the branch above X at the end next to the old root
    new_tree = reroot(tree, X, split=1.0)
    assert np.isclose(new_tree.root.clades[1].branch_length, 0)
    order = [t.name for t in new_tree.get_terminals()]
    old = dict(zip([t.name for t in tree.get_terminals()], leaf_dates(tree)))
    assert np.allclose(leaf_dates(new_tree), [old[n] for n in order])


def test_reroot_moves_annotations():
    from rootclock.tree_utils import reroot
    tree = rooted_tree()
    for n in tree.find_clades():
        if n is not tree.root:
            n.unrec = n.name.lower()
    C = [n for n in tree.get_terminals() if n.name=='C'][0]
    new_tree = reroot(tree, C, split=0.5, annotation='unrec')
    unrec = {n.name:n.unrec for n in new_tree.find_clades() if n is not new_tree.root}
    # C's branch was split, the branch Y-R keeps Y's value although R is now below Y
    assert unrec == {'C':'c', 'Y':'c', 'D':'d', 'R':'y', 'X':'x', 'A':'a', 'B':'b'}


def test_reroot_without_annotation_leaves_attributes():
    from rootclock.tree_utils import reroot
    tree = rooted_tree()
    for n in tree.find_clades():
        n.unrec = n.name.lower()
    C = [n for n in tree.get_terminals() if n.name=='C'][0]
    new_tree = reroot(tree, C, split=0.5)
    assert {n.name:n.unrec for n in new_tree.find_clades() if n.name} == \
           {'A':'a', 'B':'b', 'C':'c', 'D':'d', 'X':'x', 'Y':'y', 'R':'r'}


def test_reroot_errors():
    from rootclock.tree_utils import reroot
    from rootclock import RootClockError
    tree = rooted_tree()
    with pytest.raises(RootClockError):
        reroot(tree, tree.root)
    other = rooted_tree()
    with pytest.raises(RootClockError):
        reroot(tree, other.root.clades[0])


def test_move_annotations_incomplete_table():
    from rootclock.tree_utils import reroot, move_annotations, edge_key
    from rootclock import AnnotationConsistencyError
    tree = rooted_tree()
    C = [n for n in tree.get_terminals() if n.name=='C'][0]
    new_tree = reroot(tree, C, split=0.5)
    table = {edge_key(n, n.up):n.name.lower() for n in new_tree.find_clades()
             if n.up is not None and n.up is not new_tree.root}
    move_annotations(new_tree.root, table, 's', 'unrec')
    assert [c.unrec for c in new_tree.root.clades] == ['s', 's']
    assert new_tree.get_terminals()[-1].unrec == new_tree.get_terminals()[-1].name.lower()
    R = [n for n in new_tree.find_clades() if n.name=='R'][0]
    del table[edge_key(R, R.up)]
    with pytest.raises(AnnotationConsistencyError):
        move_annotations(new_tree.root, table, 's', 'unrec')


def test_single_tip_tree():
    from Bio.Phylo.BaseTree import Clade, Tree
    from rootclock.tree_utils import pairwise_node_distances
    from rootclock import leaf_dates, all_dates, node_dates
    tree = Tree(root=Clade(name='A', branch_length=0.5))
    tree.root_time = 2000.0
    assert np.allclose(leaf_dates(tree), [2000.0])
    assert np.allclose(all_dates(tree), [2000.0])
    assert len(node_dates(tree))==0
    assert pairwise_node_distances(tree).shape == (1, 1)
