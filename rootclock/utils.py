import sys, time
import datetime
from textwrap import fill
import numpy as np
import pandas as pd
from rootclock import config as ttconf
from rootclock import MissingDataError


def make_logger(verbose=ttconf.VERBOSE, stream=None):
    """
    Create a log function that prints time-stamped messages.

    Parameters
    ----------
    verbose : int
        Verbosity level as number from 0 (lowest) to 10 (highest).
        Only messages with a level below this value are shown.

    stream : file-like, optional
        where to write the messages, defaults to sys.stdout

    Returns
    -------
    callable
        function with the signature ``logger(msg, level, warn=False, only_once=False)``
    """
    t_start = time.time()
    log_messages = set()

    def logger(msg, level, warn=False, only_once=False):
        if only_once and msg in log_messages:
            return

        log_messages.add(msg)

        lw=80
        if level<verbose or (warn and level<=verbose):
            dt = time.time() - t_start
            outstr = '\n' if level<2 else ''
            initial_indent = format(dt, '4.2f')+'\t' + level*'-'
            subsequent_indent = " "*len(format(dt, '4.2f')) + "\t" + " "*level
            outstr += fill(msg, width=lw, initial_indent=initial_indent, subsequent_indent=subsequent_indent)
            print(outstr, file=stream or sys.stdout)

    return logger


def numeric_date(dt=None):
    """
    Convert datetime object to the numeric date.
    The numeric date format is YYYY.F, where F is the fraction of the year passed

    Parameters
    ----------
     dt:  datetime.datetime, datetime.date, None
        date of to be converted. if None, assume today

    """
    from calendar import isleap

    if dt is None:
        dt = datetime.datetime.now()

    days_in_year = 366 if isleap(dt.year) else 365
    return dt.year + (dt.timetuple().tm_yday-0.5) / days_in_year


def date_value(val):
    """
    Convert a single sampling date to a float.

    Numbers are returned as they are, None and empty strings as nan,
    date objects and ISO date strings as numeric dates, and ranges
    [lower, upper] as their midpoint.
    """
    if val is None or val is pd.NA or val is pd.NaT:
        return np.nan
    if isinstance(val, (datetime.date, pd.Timestamp)):
        return numeric_date(val)
    if isinstance(val, str):
        val = val.strip().strip('"\'')
        if val=='':
            return np.nan
        try:
            return float(val)
        except ValueError:
            pass
        # ranges given as [2002.2:2004.3]
        if val[0]=='[' and val[-1]==']' and len(val[1:-1].split(':'))==2:
            return float(np.mean([float(x) for x in val[1:-1].split(':')]))
        try:
            return numeric_date(pd.to_datetime(val))
        except ValueError:
            raise MissingDataError("date_value: can't parse date string '%s'"%val)
    if isinstance(val, (list, tuple, np.ndarray)):
        if len(val)==0:
            return np.nan
        return float(np.mean([date_value(x) for x in val]))
    return float(val)


def find_dates(tree, dates):
    """
    Arrange sampling dates in the order of the tips of the tree.

    Parameters
    ----------
    tree : Bio.Phylo.BaseTree.Tree
        tree whose tips define the order of the result

    dates : dict, pandas.Series, list, numpy.ndarray
        either a mapping from tip name to date, or a sequence that is already
        aligned to ``tree.get_terminals()``, or for a tree returned by
        :py:func:`rootclock.tree_utils.reroot`, to the tips of the tree it
        was rerooted from. For mappings, the first matching
        entry is used when a name occurs more than once and tips without an
        entry get nan. A pandas.Series with a default RangeIndex is treated
        as a sequence.

    Returns
    -------
    numpy.ndarray
        float vector with one date per tip, nan where missing
    """
    tips = tree.get_terminals()
    if isinstance(dates, pd.Series) and not isinstance(dates.index, pd.RangeIndex):
        dates = dates[~dates.index.duplicated(keep='first')].to_dict()

    if isinstance(dates, dict):
        return np.array([date_value(dates.get(tip.name)) for tip in tips], dtype=float)

    if isinstance(dates, pd.Series):
        dates = dates.tolist()
    if dates is None or isinstance(dates, str) or np.isscalar(dates):
        raise MissingDataError("find_dates: expected a mapping or a sequence of dates, got %r"%(dates,))
    if len(dates)!=len(tips):
        raise MissingDataError("find_dates: %d dates were given for a tree with %d tips. "
                               "Pass a dictionary to match dates by tip name."%(len(dates), len(tips)))
    values = [date_value(d) for d in dates]
    # rerooted trees: the sequence follows the tip order before rerooting
    order = [getattr(tip, 'input_index', None) for tip in tips]
    if None not in order and sorted(order)==list(range(len(tips))):
        values = [values[i] for i in order]
    return np.array(values, dtype=float)


def corrcoef_rows(X, y):
    """
    Pearson correlation of every row of X with y using complete pairs only.

    Parameters
    ----------
    X : numpy.ndarray
        matrix of shape (k, n) or vector of length n, may contain nan

    y : numpy.ndarray
        vector of length n, may contain nan

    Returns
    -------
    numpy.ndarray
        k correlation coefficients (a float for vector input). nan where a
        row has fewer than two complete pairs or no variation.
    """
    X = np.asarray(X, dtype=float)
    single = X.ndim==1
    X = np.atleast_2d(X)
    y = np.broadcast_to(np.asarray(y, dtype=float), X.shape)
    mask = np.isfinite(X) & np.isfinite(y)
    n = mask.sum(axis=1)
    with np.errstate(invalid='ignore', divide='ignore'):
        xm = np.where(mask, X, 0.0)
        ym = np.where(mask, y, 0.0)
        xc = np.where(mask, xm - (xm.sum(axis=1)/n)[:,None], 0.0)
        yc = np.where(mask, ym - (ym.sum(axis=1)/n)[:,None], 0.0)
        sxx = (xc**2).sum(axis=1)
        syy = (yc**2).sum(axis=1)
        r = (xc*yc).sum(axis=1)/np.sqrt(sxx*syy)
    # rows without variation are undefined
    constant = (np.where(mask, X, -np.inf).max(axis=1) == np.where(mask, X, np.inf).min(axis=1)) \
             | (np.where(mask, y, -np.inf).max(axis=1) == np.where(mask, y, np.inf).min(axis=1))
    r[(n<2) | constant] = np.nan
    # guard against rounding just outside [-1,1]
    r = np.clip(r, -1.0, 1.0)
    return r[0] if single else r
