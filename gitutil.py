# SPDX-FileCopyrightText: 2024 SAP SE or an SAP affiliate company and Gardener contributors
#
# SPDX-License-Identifier: Apache-2.0


import logging
import tempfile

import git
import git.exc

logger = logging.getLogger(__name__)

HEAD_REF = 'HEAD'


class LatestCommitError(RuntimeError):
    pass


class GitService:
    '''
    retrieves information from remote git-repositories. Clones are done into temporary
    directories (which are removed afterwards), using a shallow clone w/o checkout.

    The latest commit is memoised per repository-url for the lifetime of a `GitService`
    instance; instances are not intended to be shared across packaging runs.
    '''
    def __init__(self):
        self._latest_commits: dict[str, str] = {}

    def get_latest_commit(self, repo_url: str) -> str:
        if (commit := self._latest_commits.get(repo_url)):
            return commit

        with tempfile.TemporaryDirectory(prefix='modulectl-git-') as tmp_dir:
            logger.debug(f'cloning {repo_url=} into {tmp_dir=}')
            try:
                repo = git.Repo.clone_from(
                    url=repo_url,
                    to_path=tmp_dir,
                    depth=1,
                    single_branch=True,
                    no_checkout=True,
                )
            except git.exc.GitCommandError as gce:
                raise LatestCommitError(f'failed to clone repo: {gce}') from gce

            try:
                commit = repo.commit(HEAD_REF).hexsha
            except (ValueError, git.exc.GitError) as e:
                raise LatestCommitError(f'failed to get head: {e}') from e
            finally:
                repo.close()

        logger.info(f'latest commit of {repo_url}: {commit}')
        self._latest_commits[repo_url] = commit
        return commit
