from collections import namedtuple
import numpy as np
from rootclock import config as ttconf
from . import tree_utils
from .tree_utils import prepare_tree, pairwise_node_distances, mean_branch_length, branch_length
from .utils import find_dates, corrcoef_rows, make_logger


class RootCandidate(namedtuple('RootCandidate', ['node', 'attempt', 'attempts', 'correlation'])):
    """
    Root position on the branch above ``node``. The branch is divided into
    ``attempts+1`` equal parts and the root sits ``attempt`` parts away from
    ``node``.
    """
    __slots__ = ()

    @property
    def split(self):
        """fraction of the branch between the root and node"""
        return self.attempt/(self.attempts+1.0)

    @property
    def index(self):
        return self.node._idx


class RootSearch(object):
    """
    Exhaustive search for the root position that maximizes the correlation
    between root-to-tip distance and sampling date.

    Every branch of the tree is tried, identified by the node below it (all
    tips and all internal nodes other than the root). Each branch is tried
    at several evenly spaced positions, more for long branches. Rather than
    rerooting for every position, root-to-tip distances are derived from
    the node-to-tip distance matrix: tips below the node are reached through
    the node, all others through its parent.
    """
    def __init__(self, tree, dates, mtry=ttconf.MTRY, logger=None, verbose=ttconf.VERBOSE):
        """
        Parameters
        ----------
        tree : Bio.Phylo.BaseTree.Tree
            tree with arbitrary (or no meaningful) root

        dates : dict, pandas.Series, list, numpy.ndarray
            sampling dates, keyed by tip name or aligned to the tips

        mtry : float
            average number of rooting attempts per branch of mean length

        logger : callable, optional
            log function as returned by :py:func:`rootclock.utils.make_logger`

        verbose : int
            verbosity of the logger created if none is passed
        """
        self.logger = logger if logger else make_logger(verbose)
        self.tree = tree
        self.mtry = mtry
        self.nodes = prepare_tree(tree)
        self.n_tips = tree.count_terminals()
        self.dates = find_dates(tree, dates)
        self.D = pairwise_node_distances(tree, tips_only=True)
        self.mean_branch_length = mean_branch_length(tree)
        self.logger("RootSearch: %d tips, %d of which are dated"
                    %(self.n_tips, np.isfinite(self.dates).sum()), 2)


    def candidates(self):
        """nodes whose parental branch can carry the root, tips first"""
        return [n for n in self.nodes if n is not self.tree.root]


    def attempts(self, node):
        """number of root positions tried on the branch above node"""
        if self.mean_branch_length<=0:
            return 1
        return max(1, int(np.ceil(self.mtry*branch_length(node)/self.mean_branch_length)))


    def root_to_tip(self, node, x):
        """
        Root-to-tip distances of all tips with the root placed on the branch
        above node.

        Parameters
        ----------
        node : Bio.Phylo.BaseTree.Clade
            node below the branch

        x : float, numpy.ndarray
            distance(s) of the root from node

        Returns
        -------
        numpy.ndarray
            matrix with one row per value of x and one column per tip
        """
        x = np.atleast_1d(np.asarray(x, dtype=float))
        L = branch_length(node)
        below = np.zeros(self.n_tips, dtype=bool)
        below[node._tips] = True
        return np.where(below, self.D[node._idx] + x[:,None], self.D[node.up._idx] + (L - x)[:,None])


    def score(self, node):
        """
        correlation of date and root-to-tip distance for each attempt on the
        branch above node, -inf where the correlation is undefined
        """
        attempts = self.attempts(node)
        a = np.arange(1, attempts+1)
        r = corrcoef_rows(self.root_to_tip(node, branch_length(node)*a/(attempts+1)), self.dates)
        return np.where(np.isnan(r), -np.inf, r)


    def find_best_root(self):
        """
        Score all candidates and return the best one. Ties are resolved in
        favor of the candidate and attempt found first. If no candidate has
        a defined correlation, the first tip is returned with a single
        attempt.

        Returns
        -------
        RootCandidate
            node, attempt, number of attempts and correlation of the best root
        """
        best = None
        for node in self.candidates():
            r = self.score(node)
            ai = int(np.argmax(r))
            if r[ai]>-np.inf and (best is None or r[ai]>best.correlation):
                best = RootCandidate(node, ai+1, len(r), r[ai])

        if best is None:
            self.logger("RootSearch.find_best_root: correlation of date and root-to-tip distance is undefined "
                        "for every root, e.g. because all dates are identical. Using the first tip.", 1, warn=True)
            best = RootCandidate(self.nodes[0], 1, 1, -np.inf)
        else:
            self.logger("RootSearch.find_best_root: best root on branch above %s, attempt %d of %d, correlation %1.4f"
                        %(best.node.name, best.attempt, best.attempts, best.correlation), 2)
        return best


    def optimal_reroot(self, best=None, use_rec=False, annotation=ttconf.ANNOTATION):
        """
        Root a copy of the tree at the best position.

        Parameters
        ----------
        best : RootCandidate, optional
            root position, searched with :py:meth:`find_best_root` if None

        use_rec : bool
            keep the per branch annotation (e.g. from a recombination
            analysis) on its branch. Internal nodes of the result are named.

        annotation : str
            name of the clade attribute holding the branch annotation

        Returns
        -------
        Bio.Phylo.BaseTree.Tree
            rerooted tree, the root position is available as attribute root_candidate
        """
        if best is None:
            best = self.find_best_root()
        new_tree = tree_utils.reroot(self.tree, best.node, split=best.split,
                                     annotation=annotation if use_rec else None)
        if use_rec:
            prepare_tree(new_tree, name_internal=True)
        new_tree.root_candidate = best
        return new_tree


def init_root(tree, dates, mtry=ttconf.MTRY, use_rec=False, annotation=ttconf.ANNOTATION,
              logger=None, verbose=ttconf.VERBOSE):
    """
    Initial rooting of a tree based on the best root-to-tip correlation.

    Parameters
    ----------
    tree : Bio.Phylo.BaseTree.Tree
        unrooted (or arbitrarily rooted) tree, it is not modified

    dates : dict, pandas.Series, list, numpy.ndarray
        sampling dates, keyed by tip name or aligned to the tips

    mtry : float
        average number of rooting attempts per branch of mean length

    use_rec : bool
        keep the branch annotation given as attribute ``annotation`` of
        each clade on the correct branch

    annotation : str
        name of the clade attribute holding the branch annotation

    Returns
    -------
    Bio.Phylo.BaseTree.Tree
        rooted copy of the tree
    """
    search = RootSearch(tree, dates, mtry=mtry, logger=logger, verbose=verbose)
    return search.optimal_reroot(use_rec=use_rec, annotation=annotation)
